"""Bounded-retry JSON-RPC client shared by every chain endpoint.

Transport errors, timeouts and 5xx responses are retried with exponential
backoff (1s, 2s, 4s by default). A JSON-RPC error object means the endpoint
answered and is never retried.
"""

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from nijawallet.errors import UpstreamError, UpstreamUnavailable

logger = logging.getLogger(__name__)


class RpcClient:
    """JSON-RPC 2.0 over HTTP POST.

    Args:
        url: Endpoint URL
        timeout: Per-request timeout in seconds
        max_retries: Retries after the first attempt
        backoff_base: Delay before the first retry, doubled each time
        http_client: Shared httpx client (created and owned here if None)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._sleep = sleep
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """Call a JSON-RPC method and return its ``result``.

        Raises:
            UpstreamUnavailable: Retries exhausted
            UpstreamError: Endpoint returned a JSON-RPC error or a bad response
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        last_error = ""
        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    f"RPC {method} retry {attempt}/{self.max_retries} in {delay}s: {last_error}"
                )
                await self._sleep(delay)

            try:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                continue

            return self._parse(method, response)

        logger.error(f"RPC {method} failed after {self.max_retries + 1} attempts: {last_error}")
        raise UpstreamUnavailable(f"{method} unavailable: {last_error}")

    @staticmethod
    def _parse(method: str, response: httpx.Response) -> Any:
        if response.status_code != 200:
            raise UpstreamError(f"{method} rejected: HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError:
            raise UpstreamError(f"{method} returned invalid JSON")

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise UpstreamError(f"{method}: {message}", rpc_code=code)
        if not isinstance(data, dict) or "result" not in data:
            raise UpstreamError(f"{method} returned no result")
        return data["result"]

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
