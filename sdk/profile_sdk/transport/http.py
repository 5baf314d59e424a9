"""
HTTP transport for profile requests, built on httpx.

Each send() schedules a POST on the running asyncio loop and returns at
once. The response is mapped to a RequestResult:

    verbose=False  body "1" -> SUCCESS, anything else -> FAILURE
    verbose=True   JSON {"status": 1} -> SUCCESS, otherwise FAILURE with
                   the server's "error" text

Non-2xx responses, timeouts and connection errors are FAILURE results.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..errors import TransportError
from ..results import Continuation, RequestResult

logger = logging.getLogger(__name__)


class HttpTransport:
    """Asynchronous HTTP transport.

    send() is meant to be called from coroutines or loop callbacks. Without
    a running event loop the request is not sent and the continuation gets
    a FAILURE result.

    Example:
        >>> transport = HttpTransport(verbose=True, timeout=5.0)
        >>> transport.send(url, {"data": encoded}, on_result)
        >>> await transport.aclose()
    """

    def __init__(
        self,
        *,
        verbose: bool = False,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Initialize the transport.

        Args:
            verbose: Ask the server for a JSON status body
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (not closed by us)
            headers: Extra headers for every request
        """
        self.verbose = verbose
        self.timeout = timeout
        self._headers = headers or {}
        self._client = client
        self._owns_client = client is None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self._headers)
        return self._client

    def send(
        self,
        url: str,
        data: dict[str, str],
        continuation: Optional[Continuation] = None,
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Profile request dropped, no running event loop", extra={"url": url})
            if continuation is not None:
                continuation(
                    RequestResult.failure(TransportError("No running event loop", url=url))
                )
            return

        task = loop.create_task(self._deliver(url, data, continuation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(
        self,
        url: str,
        data: dict[str, str],
        continuation: Optional[Continuation],
    ) -> None:
        result = await self.request(url, data)
        if continuation is None:
            return
        try:
            continuation(result)
        except Exception:
            logger.exception("Profile request continuation failed", extra={"url": url})

    async def request(self, url: str, data: dict[str, str]) -> RequestResult:
        """POST one request and map the response to a RequestResult."""
        params = {"verbose": "1"} if self.verbose else None

        try:
            response = await self._get_client().post(url, data=data, params=params)
        except httpx.HTTPError as e:
            logger.warning(
                "Profile request failed",
                extra={"url": url, "error": str(e)},
            )
            return RequestResult.failure(TransportError(f"Request failed: {e}", url=url))

        if response.is_error:
            logger.warning(
                "Profile request rejected",
                extra={"url": url, "status_code": response.status_code},
            )
            return RequestResult.failure(
                TransportError(
                    f"Server returned HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                ),
                body=response.text,
            )

        return self._parse_response(url, response)

    def _parse_response(self, url: str, response: httpx.Response) -> RequestResult:
        if not self.verbose:
            if response.text.strip() == "1":
                return RequestResult.success(1)
            return RequestResult.failure(
                TransportError("Server rejected request", url=url, status_code=response.status_code),
                body=response.text,
            )

        try:
            body: Any = response.json()
        except ValueError:
            return RequestResult.failure(
                TransportError("Malformed verbose response", url=url, status_code=response.status_code),
                body=response.text,
            )

        if isinstance(body, dict) and body.get("status") == 1:
            return RequestResult.success(body)

        error = body.get("error") if isinstance(body, dict) else None
        return RequestResult.failure(
            TransportError(error or "Server rejected request", url=url, status_code=response.status_code),
            body=body,
        )

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
