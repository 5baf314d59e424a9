"""
In-memory transport for testing.

Records every request and holds its continuation until the test answers
it, which models the asynchronous completion of a real transport without
an event loop or a network.

How to change safely:
    - This is test-support code, changes don't affect production
    - Keep interface compatible with the Transport protocol
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..codec import decode_request
from ..errors import TransportError
from ..results import Continuation, RequestResult

logger = logging.getLogger(__name__)


@dataclass
class RecordedRequest:
    """A request captured by InMemoryTransport.

    Attributes:
        url: Endpoint URL
        data: Form fields as sent
        continuation: Continuation waiting for the outcome
        result: Outcome once answered
    """

    url: str
    data: dict[str, str]
    continuation: Optional[Continuation] = None
    result: Optional[RequestResult] = field(default=None)

    @property
    def answered(self) -> bool:
        return self.result is not None

    def decoded(self) -> Any:
        """The wire request as the server would see it."""
        return decode_request(self.data["data"])


class InMemoryTransport:
    """Transport that records requests and answers them on demand.

    Example:
        >>> transport = InMemoryTransport()
        >>> client = ProfileClient(settings, transport=transport)
        >>> client.identify("user:42")
        >>> transport.respond_all(RequestResult.success(1))
    """

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []

    def send(
        self,
        url: str,
        data: dict[str, str],
        continuation: Optional[Continuation] = None,
    ) -> None:
        self.requests.append(RecordedRequest(url=url, data=dict(data), continuation=continuation))
        logger.debug("Recorded profile request", extra={"url": url})

    @property
    def pending(self) -> list[RecordedRequest]:
        return [r for r in self.requests if not r.answered]

    def respond(self, request: RecordedRequest, result: RequestResult) -> None:
        """Answer one request and run its continuation."""
        if request.answered:
            raise ValueError("Request already answered")
        request.result = result
        if request.continuation is not None:
            request.continuation(result)

    def respond_all(self, result: RequestResult) -> int:
        """Answer every pending request with ``result``.

        Returns:
            Number of requests answered
        """
        pending = self.pending
        for request in pending:
            self.respond(request, result)
        return len(pending)

    def succeed_all(self) -> int:
        return self.respond_all(RequestResult.success(1))

    def fail_all(self, message: str = "network unreachable") -> int:
        return self.respond_all(RequestResult.failure(TransportError(message)))

    def decoded_requests(self) -> list[Any]:
        return [r.decoded() for r in self.requests]

    def clear(self) -> None:
        self.requests.clear()

    async def drain(self) -> None:
        """Nothing runs in the background here."""

    async def aclose(self) -> None:
        pass
