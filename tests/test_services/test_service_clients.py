"""
Tests for the backend service clients.

Failures must come out as exactly one ServiceError variant; the raw httpx
exception never leaks.
"""

import asyncio
import json

import httpx
import pytest

from services.clients import OrderServiceClient, ProductServiceClient, create_services
from shared.config import Settings
from shared.errors import NetworkError, NotFound, RequestTimeout, ServerError, Unauthorized
from shared.models import OrderStatus
from shared.storage import MemoryStorage

BASE_URL = "http://backend.test/api"


def catalog_client(handler, storage=None) -> ProductServiceClient:
    return ProductServiceClient(BASE_URL, storage=storage, transport=httpx.MockTransport(handler))


class TestRequests:
    """Tests for request construction."""

    def test_bearer_token_from_storage(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json=[])

        client = catalog_client(handler, storage=MemoryStorage({"auth_token": "secret"}))
        asyncio.run(client.list_products())

        assert seen == ["Bearer secret"]

    def test_no_token_no_header(self):
        seen = []

        def handler(request):
            seen.append("Authorization" in request.headers)
            return httpx.Response(200, json=[])

        asyncio.run(catalog_client(handler, storage=MemoryStorage()).list_products())

        assert seen == [False]

    def test_none_params_are_dropped(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"data": []})

        asyncio.run(catalog_client(handler).list_products({"category": "audio", "page": None}))

        assert seen == [{"category": "audio"}]

    def test_list_products_accepts_both_shapes(self):
        bodies = [[{"id": "p1", "name": "Lamp", "price": 1.0}], {"data": [{"id": "p2", "name": "Rug", "price": 2.0}]}]

        def handler(request):
            return httpx.Response(200, json=bodies.pop(0))

        client = catalog_client(handler)

        async def scenario():
            return await client.list_products(), await client.list_products()

        first, second = asyncio.run(scenario())

        assert [p.id for p in first] == ["p1"]
        assert [p.id for p in second] == ["p2"]

    def test_update_status_payload(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"id": "o1", "user_id": "u1", "status": "shipped"})

        client = OrderServiceClient(BASE_URL, transport=httpx.MockTransport(handler))
        order = asyncio.run(client.update_status("o1", OrderStatus.SHIPPED))

        assert seen == [("PATCH", "/api/orders/o1/status", {"status": "shipped"})]
        assert order.status == "shipped"

    def test_empty_response_is_none(self):
        client = OrderServiceClient(BASE_URL, transport=httpx.MockTransport(lambda r: httpx.Response(204)))

        assert asyncio.run(client.clear_cart()) is None


class TestErrorMapping:
    """Tests for failure classification."""

    @pytest.mark.parametrize("status,expected", [(401, Unauthorized), (404, NotFound), (502, ServerError)])
    def test_http_errors(self, status, expected):
        client = catalog_client(lambda r: httpx.Response(status, json={"message": "nope"}))

        with pytest.raises(expected) as info:
            asyncio.run(client.get_product("p1"))

        assert info.value.message == "nope"

    def test_non_json_error_body(self):
        client = catalog_client(lambda r: httpx.Response(500, text="<html>oops</html>"))

        with pytest.raises(ServerError) as info:
            asyncio.run(client.get_product("p1"))

        assert info.value.message == "Server error. Please try again later."

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RequestTimeout):
            asyncio.run(catalog_client(handler).get_product("p1"))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            asyncio.run(catalog_client(handler).get_product("p1"))


def test_create_services_shares_settings():
    settings = Settings(api_base_url="http://shop.test/api", request_timeout=3.0)

    services = create_services(settings, storage=MemoryStorage())

    assert services.catalog.base_url == "http://shop.test/api"
    assert services.orders.base_url == "http://shop.test/api"
    assert services.customer.token_key == "auth_token"
    asyncio.run(services.aclose())
