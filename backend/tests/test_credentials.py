"""Tests for the Amadeus credential provider."""
import httpx
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from farealert.exceptions import FatalAuthError
from farealert.services.credentials import AmadeusCredentialProvider

BASE_URL = "https://test.api.amadeus.com"


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


def token_response(token="tok-1", expires_in=1799):
    return httpx.Response(200, json={"access_token": token, "expires_in": expires_in, "token_type": "Bearer"})


def make_provider(responses, clock=None, client_id="id", client_secret="secret"):
    http_client = MagicMock()
    http_client.post = AsyncMock(side_effect=responses)
    provider = AmadeusCredentialProvider(
        client_id=client_id,
        client_secret=client_secret,
        base_url=BASE_URL,
        http_client=http_client,
        clock=clock or FakeClock(datetime(2026, 10, 19, 16, 0, 0)),
        expiry_margin_seconds=60,
    )
    return provider, http_client


class TestTokenCache:
    async def test_token_is_reused(self):
        provider, http_client = make_provider([token_response()])

        assert await provider.get_token() == "tok-1"
        assert await provider.get_token() == "tok-1"
        assert http_client.post.await_count == 1
        assert provider.refresh_count == 1

    async def test_posts_client_credentials(self):
        provider, http_client = make_provider([token_response()])
        await provider.get_token()

        args, kwargs = http_client.post.call_args
        assert args[0] == f"{BASE_URL}/v1/security/oauth2/token"
        assert kwargs["data"] == {
            "grant_type": "client_credentials",
            "client_id": "id",
            "client_secret": "secret",
        }

    async def test_expiry_recorded(self):
        clock = FakeClock(datetime(2026, 10, 19, 16, 0, 0))
        provider, _ = make_provider([token_response(expires_in=1800)], clock=clock)
        await provider.get_token()
        assert provider.token_expires == clock.current + timedelta(seconds=1800)

    async def test_proactive_refresh_inside_margin(self):
        clock = FakeClock(datetime(2026, 10, 19, 16, 0, 0))
        provider, http_client = make_provider(
            [token_response("tok-1", 1800), token_response("tok-2", 1800)], clock=clock
        )
        await provider.get_token()

        clock.advance(seconds=1739)
        assert await provider.get_token() == "tok-1"

        clock.advance(seconds=2)
        assert await provider.get_token() == "tok-2"
        assert http_client.post.await_count == 2

    async def test_forced_refresh(self):
        provider, _ = make_provider([token_response("tok-1"), token_response("tok-2")])
        await provider.get_token()
        assert await provider.refresh() == "tok-2"
        assert provider.has_valid_token()

    async def test_invalidate(self):
        provider, http_client = make_provider([token_response("tok-1"), token_response("tok-2")])
        await provider.get_token()
        provider.invalidate()
        assert not provider.has_valid_token()
        assert await provider.get_token() == "tok-2"


class TestFailures:
    async def test_missing_credentials(self):
        provider, http_client = make_provider([], client_id="", client_secret="")
        assert not provider.is_configured()
        with pytest.raises(FatalAuthError):
            await provider.get_token()
        http_client.post.assert_not_awaited()

    async def test_non_200(self):
        provider, _ = make_provider([httpx.Response(401, json={"error": "invalid_client"})])
        with pytest.raises(FatalAuthError, match="HTTP 401"):
            await provider.get_token()
        assert not provider.has_valid_token()

    async def test_malformed_payload(self):
        provider, _ = make_provider([httpx.Response(200, json={"token_type": "Bearer"})])
        with pytest.raises(FatalAuthError, match="Malformed"):
            await provider.get_token()

    async def test_non_json_payload(self):
        provider, _ = make_provider([httpx.Response(200, text="<html>gateway error</html>")])
        with pytest.raises(FatalAuthError):
            await provider.get_token()

    async def test_network_error(self):
        provider, _ = make_provider([httpx.ConnectError("connection refused")])
        with pytest.raises(FatalAuthError, match="Token request failed"):
            await provider.get_token()

    async def test_failed_refresh_drops_old_token(self):
        provider, _ = make_provider([token_response("tok-1"), httpx.Response(500, text="boom")])
        await provider.get_token()
        with pytest.raises(FatalAuthError):
            await provider.refresh()
        assert not provider.has_valid_token()
