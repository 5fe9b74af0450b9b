"""HTTP adapter for broker and document store operations."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import APIError

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. No retries: every failure is surfaced
    to the caller for manual resubmission.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        params: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._params = params or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            params=self._params,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    @staticmethod
    def _check(method: str, endpoint: str, response: httpx.Response) -> httpx.Response:
        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except ValueError:
                error_detail = response.text
            raise APIError(method, endpoint, response.status_code, error_detail)
        return response

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        client = self._require_client()
        logger.debug("GET %s params=%s", endpoint, params)
        response = await client.get(endpoint, params=params)
        return self._check("GET", endpoint, response)

    async def post(self, endpoint: str, json: Dict) -> Any:
        client = self._require_client()
        logger.debug("POST %s", endpoint)
        response = await client.post(endpoint, json=json)
        return self._check("POST", endpoint, response)

    async def patch(self, endpoint: str, json: Dict) -> Any:
        client = self._require_client()
        logger.debug("PATCH %s", endpoint)
        response = await client.patch(endpoint, json=json)
        return self._check("PATCH", endpoint, response)
