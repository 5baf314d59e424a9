"""
Protocol for profile request transports.

A transport delivers one encoded profile request and reports the outcome
through a continuation. It never blocks the caller and never raises for
delivery problems: failures arrive as RequestResult.failure(...).

Contract:
    - send() returns before the outcome is known
    - The continuation is called exactly once per send()
    - Retry, backoff and timeouts belong to the transport, not the caller
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from ..results import Continuation


@runtime_checkable
class Transport(Protocol):
    """Fire-and-forget request delivery.

    Example:
        >>> transport.send(
        ...     "https://api.example.com/engage/",
        ...     {"data": encoded},
        ...     lambda result: print(result.outcome),
        ... )
    """

    @abstractmethod
    def send(
        self,
        url: str,
        data: dict[str, str],
        continuation: Optional[Continuation] = None,
    ) -> None:
        """Start delivering a request.

        Args:
            url: Endpoint URL
            data: Form fields (the encoded request is under "data")
            continuation: Called with the RequestResult when done
        """
        ...

    @abstractmethod
    async def drain(self) -> None:
        """Wait until every request sent so far has completed."""
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Drain and release resources."""
        ...
