"""Tests for the Amadeus fare gateway."""
import httpx
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from farealert.exceptions import DestinationFetchError, FatalAuthError, MalformedResponseError, NotFoundError
from farealert.services.fare_gateway import (
    FOUND,
    MALFORMED,
    NOT_FOUND,
    TRANSIENT_ERROR,
    AmadeusFareGateway,
    FareLookup,
)

BASE_URL = "https://test.api.amadeus.com"
DEPARTURE = date(2026, 11, 18)


class StubCredentials:
    def __init__(self, refresh_fails=False, token_fails=False):
        self.token = "tok-1"
        self.refresh_calls = 0
        self.refresh_fails = refresh_fails
        self.token_fails = token_fails

    async def get_token(self):
        if self.token_fails:
            raise FatalAuthError("Amadeus API credentials not configured")
        return self.token

    async def refresh(self):
        self.refresh_calls += 1
        if self.refresh_fails:
            raise FatalAuthError("Token request failed: HTTP 401")
        self.token = f"tok-{self.refresh_calls + 1}"
        return self.token


def offers(*totals):
    return {"data": [{"price": {"total": str(t), "currency": "USD"}} for t in totals]}


def make_gateway(responses, credentials=None):
    http_client = MagicMock()
    http_client.get = AsyncMock(side_effect=responses)
    gateway = AmadeusFareGateway(
        credentials or StubCredentials(),
        base_url=BASE_URL,
        http_client=http_client,
        currency="USD",
        adults=1,
        max_results=5,
        timeout=30.0,
    )
    return gateway, http_client


class TestLookups:
    async def test_returns_minimum_offer(self):
        gateway, _ = make_gateway([httpx.Response(200, json=offers("512.40", "450.00", "700.10"))])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == FOUND
        assert lookup.is_found
        assert lookup.price == Decimal("450.00")
        assert lookup.as_error() is None

    async def test_search_parameters(self):
        gateway, http_client = make_gateway([httpx.Response(200, json=offers("450.00"))])
        await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        args, kwargs = http_client.get.call_args
        assert args[0] == f"{BASE_URL}/v2/shopping/flight-offers"
        assert kwargs["headers"] == {"Authorization": "Bearer tok-1"}
        assert kwargs["params"] == {
            "originLocationCode": "ATL",
            "destinationLocationCode": "LIS",
            "departureDate": "2026-11-18",
            "adults": 1,
            "max": 5,
            "currencyCode": "USD",
        }

    async def test_no_offers(self):
        gateway, _ = make_gateway([httpx.Response(200, json={"data": []})])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == NOT_FOUND
        assert isinstance(lookup.as_error(), NotFoundError)

    async def test_server_error_is_transient(self):
        gateway, _ = make_gateway([httpx.Response(500, text="Internal error")])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == TRANSIENT_ERROR
        assert lookup.http_status == 500
        error = lookup.as_error()
        assert isinstance(error, DestinationFetchError)
        assert error.status_code == 500
        assert error.destination_code == "LIS"

    @pytest.mark.parametrize("body", [
        {"data": [{"price": {}}]},
        {"data": [{"price": {"total": "-5.00"}}]},
        {"errors": [{"code": 141}]},
    ])
    async def test_malformed_payload(self, body):
        gateway, _ = make_gateway([httpx.Response(200, json=body)])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)
        assert lookup.status == MALFORMED
        assert type(lookup.as_error()) is MalformedResponseError

    async def test_non_json_body(self):
        gateway, _ = make_gateway([httpx.Response(200, text="<html>maintenance</html>")])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)
        assert lookup.status == MALFORMED

    async def test_timeout(self):
        gateway, _ = make_gateway([httpx.ReadTimeout("timed out")])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == TRANSIENT_ERROR
        assert lookup.error == "Request timed out"

    async def test_connection_error(self):
        gateway, _ = make_gateway([httpx.ConnectError("connection refused")])
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)
        assert lookup.status == TRANSIENT_ERROR

    async def test_token_unavailable_is_transient(self):
        gateway, http_client = make_gateway([], credentials=StubCredentials(token_fails=True))
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == TRANSIENT_ERROR
        http_client.get.assert_not_awaited()


class TestReactiveRefresh:
    async def test_401_refreshes_and_retries(self):
        credentials = StubCredentials()
        gateway, http_client = make_gateway(
            [httpx.Response(401, json={}), httpx.Response(200, json=offers("450.00"))],
            credentials=credentials,
        )
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == FOUND
        assert credentials.refresh_calls == 1
        assert http_client.get.call_args.kwargs["headers"] == {"Authorization": "Bearer tok-2"}

    async def test_only_one_refresh_per_run(self):
        credentials = StubCredentials()
        gateway, _ = make_gateway(
            [httpx.Response(401, json={}), httpx.Response(401, json={}), httpx.Response(401, json={})],
            credentials=credentials,
        )
        first = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)
        second = await gateway.fetch_lowest_price("ATL", "FCO", DEPARTURE)

        assert first.status == TRANSIENT_ERROR
        assert first.http_status == 401
        assert second.status == TRANSIENT_ERROR
        assert credentials.refresh_calls == 1

    async def test_begin_run_resets_budget(self):
        credentials = StubCredentials()
        gateway, _ = make_gateway(
            [httpx.Response(401, json={})] * 4,
            credentials=credentials,
        )
        await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)
        gateway.begin_run()
        await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert credentials.refresh_calls == 2

    async def test_failed_refresh_is_transient_for_destination(self):
        credentials = StubCredentials(refresh_fails=True)
        gateway, http_client = make_gateway([httpx.Response(401, json={})], credentials=credentials)
        lookup = await gateway.fetch_lowest_price("ATL", "LIS", DEPARTURE)

        assert lookup.status == TRANSIENT_ERROR
        assert lookup.http_status == 401
        assert http_client.get.await_count == 1

    async def test_authenticate_propagates_fatal(self):
        gateway, _ = make_gateway([], credentials=StubCredentials(token_fails=True))
        with pytest.raises(FatalAuthError):
            await gateway.authenticate()


def test_lookup_error_message_defaults():
    lookup = FareLookup(status=TRANSIENT_ERROR, destination_code="LIS")
    assert str(lookup.as_error()) == "Fare search failed"


def test_malformed_lookup_has_its_own_error_kind():
    lookup = FareLookup(status=MALFORMED, destination_code="LIS", http_status=200)
    error = lookup.as_error()

    assert isinstance(error, MalformedResponseError)
    assert isinstance(error, DestinationFetchError)
    assert str(error) == "Malformed fare search response"
    assert error.status_code == 200
