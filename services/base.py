"""
Base HTTP client for the backend services.

Each backend domain (catalog, orders/cart, customer) gets a thin async client
built on this class. Its only jobs are to attach the bearer token, apply the
timeout, and turn every failure into exactly one ServiceError variant. Retrying
is the query client's job, not this one's.
"""

import logging
import time
from typing import Any, Optional

import httpx

from shared.errors import NetworkError, RequestTimeout, error_from_status
from shared.storage import LocalStorage

logger = logging.getLogger("service_client")

SLOW_REQUEST_SECONDS = 3.0


class ServiceClient:
    """
    Async JSON client for one backend service.

    Example:
        client = ProductServiceClient(base_url="http://localhost:8080/api", storage=storage)
        products = await client.list_products({"category": "audio"})
        await client.aclose()
    """

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        storage: Optional[LocalStorage] = None,
        timeout: float = 10.0,
        token_key: str = "auth_token",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Root URL of the backend
            storage: Where the auth token is read from (no auth header if None)
            timeout: Per-request timeout in seconds
            token_key: Storage key holding the bearer token
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url
        self.storage = storage
        self.token_key = token_key
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.storage is not None:
            token = self.storage.get_item(self.token_key)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            ServiceError: the classified failure (never a raw httpx exception)
        """
        started = time.monotonic()
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"[{self.service_name}] {method} {path} timed out")
            raise RequestTimeout(f"Request timeout calling {self.service_name}") from e
        except httpx.TransportError as e:
            logger.warning(f"[{self.service_name}] {method} {path} network error: {e}")
            raise NetworkError(f"Network error calling {self.service_name}") from e

        duration = time.monotonic() - started
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow {self.service_name} request: {path} took {duration:.1f}s")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = error_from_status(response.status_code, body)
            logger.error(f"[{self.service_name}] {method} {path} -> {error}")
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return await self._request("GET", path, params=params or None)

    async def _post(self, path: str, json: Any = None) -> Any:
        return await self._request("POST", path, json=json)

    async def _put(self, path: str, json: Any = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def _patch(self, path: str, json: Any = None) -> Any:
        return await self._request("PATCH", path, json=json)

    async def _delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()
