"""
Fare Gateway: lowest-fare lookups against the Amadeus flight offers search.

Lookups never raise for HTTP or network trouble. Each call returns a
FareLookup whose status tells the caller whether a price was found, no offers
exist, the request failed transiently, or the payload did not match the
expected schema.
"""
import httpx
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError

from farealert.config import Settings, get_settings
from farealert.exceptions import (
    DestinationFetchError,
    FareAlertError,
    FatalAuthError,
    MalformedResponseError,
    NotFoundError,
)
from farealert.schemas.fare_search import FlightOffersResponse
from farealert.services.credentials import AmadeusCredentialProvider

logger = logging.getLogger(__name__)

FOUND = "found"
NOT_FOUND = "not_found"
TRANSIENT_ERROR = "transient_error"
MALFORMED = "malformed"


@dataclass
class FareLookup:
    status: str
    destination_code: str
    price: Optional[Decimal] = None
    http_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_found(self) -> bool:
        return self.status == FOUND

    def as_error(self) -> Optional[FareAlertError]:
        """The taxonomy error describing an unsuccessful lookup, or None if a price was found."""
        if self.status == FOUND:
            return None
        if self.status == NOT_FOUND:
            return NotFoundError(f"No fares found for {self.destination_code}")
        if self.status == MALFORMED:
            return MalformedResponseError(
                self.destination_code,
                self.error or "Malformed fare search response",
                status_code=self.http_status,
            )
        return DestinationFetchError(
            self.destination_code,
            self.error or "Fare search failed",
            status_code=self.http_status,
        )


class AmadeusFareGateway:
    name = "amadeus"
    SEARCH_PATH = "/v2/shopping/flight-offers"

    def __init__(
        self,
        credentials: AmadeusCredentialProvider,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        currency: str = "USD",
        adults: int = 1,
        max_results: int = 5,
        timeout: float = 30.0,
    ):
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.adults = adults
        self.max_results = max_results
        self.timeout = timeout
        self._http_client = http_client
        self._reactive_refresh_available = True

    def begin_run(self) -> None:
        """Reset the per-run budget of one reactive token refresh."""
        self._reactive_refresh_available = True

    async def authenticate(self) -> None:
        """Make sure a usable token is cached. Raises FatalAuthError."""
        await self.credentials.get_token()

    async def fetch_lowest_price(
        self,
        origin: str,
        destination_code: str,
        departure_date: date,
    ) -> FareLookup:
        try:
            token = await self.credentials.get_token()
        except FatalAuthError as e:
            logger.warning(f"{destination_code}: could not obtain fare-search token: {e}")
            return FareLookup(status=TRANSIENT_ERROR, destination_code=destination_code, error=str(e))

        response = await self._search(token, origin, destination_code, departure_date)
        if isinstance(response, FareLookup):
            return response

        if response.status_code == 401 and self._reactive_refresh_available:
            self._reactive_refresh_available = False
            logger.info(f"{destination_code}: token rejected, re-authenticating once")
            try:
                token = await self.credentials.refresh()
            except FatalAuthError as e:
                logger.warning(f"{destination_code}: re-authentication failed: {e}")
                return FareLookup(
                    status=TRANSIENT_ERROR,
                    destination_code=destination_code,
                    http_status=401,
                    error=str(e),
                )
            response = await self._search(token, origin, destination_code, departure_date)
            if isinstance(response, FareLookup):
                return response

        return self._parse(destination_code, response)

    async def _search(
        self,
        token: str,
        origin: str,
        destination_code: str,
        departure_date: date,
    ) -> Union[httpx.Response, FareLookup]:
        params = {
            "originLocationCode": origin,
            "destinationLocationCode": destination_code,
            "departureDate": departure_date.isoformat(),
            "adults": self.adults,
            "max": self.max_results,
            "currencyCode": self.currency,
        }
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self.base_url}{self.SEARCH_PATH}"

        try:
            if self._http_client is not None:
                return await self._http_client.get(url, headers=headers, params=params, timeout=self.timeout)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.get(url, headers=headers, params=params)
        except httpx.TimeoutException:
            logger.warning(f"{destination_code}: fare search timed out after {self.timeout}s")
            return FareLookup(status=TRANSIENT_ERROR, destination_code=destination_code, error="Request timed out")
        except httpx.HTTPError as e:
            logger.warning(f"{destination_code}: fare search request failed: {e}")
            return FareLookup(status=TRANSIENT_ERROR, destination_code=destination_code, error=str(e))

    def _parse(self, destination_code: str, response: httpx.Response) -> FareLookup:
        if response.status_code != 200:
            logger.warning(
                f"{destination_code}: fare search returned HTTP {response.status_code}: {response.text[:200]}"
            )
            return FareLookup(
                status=TRANSIENT_ERROR,
                destination_code=destination_code,
                http_status=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        try:
            offers = FlightOffersResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(f"{destination_code}: malformed fare search response: {e}")
            return FareLookup(
                status=MALFORMED,
                destination_code=destination_code,
                http_status=response.status_code,
                error="Malformed fare search response",
            )

        lowest = offers.lowest_price
        if lowest is None:
            logger.info(f"{destination_code}: no offers returned")
            return FareLookup(status=NOT_FOUND, destination_code=destination_code, http_status=200)

        return FareLookup(status=FOUND, destination_code=destination_code, price=lowest, http_status=200)


def build_fare_gateway(settings: Optional[Settings] = None) -> AmadeusFareGateway:
    settings = settings or get_settings()
    credentials = AmadeusCredentialProvider(
        client_id=settings.amadeus_client_id,
        client_secret=settings.amadeus_client_secret,
        base_url=settings.amadeus_base_url,
        expiry_margin_seconds=settings.token_expiry_margin_seconds,
        timeout=settings.token_request_timeout_seconds,
    )
    return AmadeusFareGateway(
        credentials,
        base_url=settings.amadeus_base_url,
        currency=settings.currency,
        adults=settings.search_adults,
        max_results=settings.search_max_results,
        timeout=settings.fare_request_timeout_seconds,
    )
