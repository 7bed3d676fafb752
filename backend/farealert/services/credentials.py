"""
Fare-search credential provider.

Owns the client-credentials access token for the Amadeus API. The token is
cached with its server-declared lifetime and refreshed proactively shortly
before it expires, or on demand after an authentication failure.
"""
import httpx
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from farealert.database import utc_now
from farealert.exceptions import FatalAuthError
from farealert.schemas.fare_search import AccessTokenResponse

logger = logging.getLogger(__name__)


class AmadeusCredentialProvider:
    TOKEN_PATH = "/v1/security/oauth2/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utc_now,
        expiry_margin_seconds: int = 60,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.expiry_margin = timedelta(seconds=expiry_margin_seconds)
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None
        self.refresh_count = 0

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def token_expires(self) -> Optional[datetime]:
        return self._token_expires

    def has_valid_token(self) -> bool:
        """True while the cached token is outside its refresh margin."""
        if not self._token or not self._token_expires:
            return False
        return self._clock() < self._token_expires - self.expiry_margin

    def invalidate(self) -> None:
        self._token = None
        self._token_expires = None

    async def get_token(self) -> str:
        if self.has_valid_token():
            return self._token
        return await self.refresh()

    async def refresh(self) -> str:
        """Exchange client credentials for a new token. Raises FatalAuthError."""
        if not self.is_configured():
            raise FatalAuthError("Amadeus API credentials not configured")

        self.invalidate()
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            response = await self._post(f"{self.base_url}{self.TOKEN_PATH}", data)
        except httpx.HTTPError as e:
            logger.warning(f"Amadeus auth request failed: {e}")
            raise FatalAuthError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Amadeus auth returned HTTP {response.status_code}: {response.text[:200]}")
            raise FatalAuthError(f"Token request failed: HTTP {response.status_code}")

        try:
            token = AccessTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise FatalAuthError(f"Malformed token response: {e}") from e

        self._token = token.access_token
        self._token_expires = self._clock() + timedelta(seconds=token.expires_in)
        self.refresh_count += 1
        logger.info(f"Obtained Amadeus access token (expires {self._token_expires.isoformat()})")
        return self._token

    async def _post(self, url: str, data: dict) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, data=data, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, data=data)
