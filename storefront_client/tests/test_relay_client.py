"""
Unit tests for the relay client.
"""

import httpx
import pytest
from respx import MockRouter

from shared.retry import RetryPolicy
from storefront_client.relay_client import RelayClient
from storefront_client.token_store import TokenStore

RELAY = "http://relay.test"


@pytest.fixture
def store():
    return TokenStore("session-token")


@pytest.fixture
def relay_client(store):
    return RelayClient(RELAY, store.get, policy=RetryPolicy(max_attempts=3, base_delay=0, max_delay=0))


class TestRelayClient:
    """Test cases for RelayClient."""

    @pytest.mark.asyncio
    async def test_request_uses_provider_credential(self, relay_client, respx_mock: MockRouter):
        route = respx_mock.get(f"{RELAY}/api/cart").mock(return_value=httpx.Response(200, json={"items": []}))

        response = await relay_client.request("GET", "/api/cart", params={"page": 1})

        assert response.status_code == 200
        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer session-token"
        assert request.url.params["page"] == "1"

    @pytest.mark.asyncio
    async def test_explicit_token_wins(self, relay_client, respx_mock: MockRouter):
        route = respx_mock.get(f"{RELAY}/api/cart").mock(return_value=httpx.Response(200, json={}))

        await relay_client.request("GET", "/api/cart", token="other")

        assert route.calls.last.request.headers["authorization"] == "Bearer other"

    @pytest.mark.asyncio
    async def test_no_credential_no_header(self, store, relay_client, respx_mock: MockRouter):
        store.clear()
        route = respx_mock.get(f"{RELAY}/api/marketing/campaign/banner").mock(
            return_value=httpx.Response(200, json={"imageUrl": None})
        )

        await relay_client.request("GET", "/api/marketing/campaign/banner")

        assert "authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    async def test_fetch_or_fallback_success(self, relay_client, respx_mock: MockRouter):
        respx_mock.get(f"{RELAY}/api/marketing/categories").mock(
            return_value=httpx.Response(200, json=[{"id": "all"}])
        )

        data = await relay_client.fetch_or_fallback("/api/marketing/categories", fallback=[])

        assert data == [{"id": "all"}]

    @pytest.mark.asyncio
    async def test_fetch_or_fallback_gives_up_on_client_error(self, relay_client, respx_mock: MockRouter):
        route = respx_mock.get(f"{RELAY}/api/orders/9").mock(
            return_value=httpx.Response(404, json={"error": "Order not found"})
        )

        data = await relay_client.fetch_or_fallback("/api/orders/9", fallback={"order": None})

        assert data == {"order": None}
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_or_fallback_retries_unauthorized(self, relay_client, respx_mock: MockRouter):
        route = respx_mock.get(f"{RELAY}/api/orders/history").mock(
            return_value=httpx.Response(401, json={"error": "Authentication token not found"})
        )

        data = await relay_client.fetch_or_fallback("/api/orders/history", fallback=[])

        assert data == []
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_fetch_or_fallback_recovers(self, relay_client, respx_mock: MockRouter):
        respx_mock.get(f"{RELAY}/api/orders/history").mock(side_effect=[
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"success": True, "orders": []}),
        ])

        data = await relay_client.fetch_or_fallback("/api/orders/history")

        assert data == {"success": True, "orders": []}

    @pytest.mark.asyncio
    async def test_without_credential_nothing_is_sent(self, store, relay_client, respx_mock: MockRouter):
        store.clear()

        data = await relay_client.fetch_or_fallback("/api/cart", fallback={"items": []})

        assert data == {"items": []}
        assert len(respx_mock.calls) == 0
