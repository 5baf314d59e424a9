"""
Request outcomes delivered to continuations.

Every dispatched mutation ends in exactly one RequestResult:
- SUCCESS: the server accepted the request
- FAILURE: the request was not delivered or was rejected
- DEFERRED: identity is unresolved, the mutation was queued

Results are data. Transport problems never surface as exceptions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import TransportError


class RequestOutcome(Enum):
    """Tagged outcome of one request."""

    SUCCESS = "success"
    FAILURE = "failure"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class RequestResult:
    """Outcome of one profile request.

    Attributes:
        outcome: SUCCESS, FAILURE or DEFERRED
        body: Parsed server body (SUCCESS, and FAILURE when one was received)
        error: Failure detail
        payload: Truncated wire request the result belongs to
    """

    outcome: RequestOutcome
    body: Any = None
    error: Optional[TransportError] = None
    payload: Optional[dict[str, Any]] = None

    @classmethod
    def success(cls, body: Any = None) -> RequestResult:
        return cls(RequestOutcome.SUCCESS, body=body)

    @classmethod
    def failure(cls, error: TransportError, body: Any = None) -> RequestResult:
        return cls(RequestOutcome.FAILURE, body=body, error=error)

    @classmethod
    def deferred(cls, payload: Optional[dict[str, Any]] = None) -> RequestResult:
        return cls(RequestOutcome.DEFERRED, payload=payload)

    def with_payload(self, payload: dict[str, Any]) -> RequestResult:
        return RequestResult(self.outcome, body=self.body, error=self.error, payload=payload)

    @property
    def ok(self) -> bool:
        return self.outcome is RequestOutcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome is RequestOutcome.FAILURE

    @property
    def is_deferred(self) -> bool:
        return self.outcome is RequestOutcome.DEFERRED

    @property
    def status(self) -> int:
        """Numeric status code: 1 success, 0 failure, -1 deferred."""
        if self.ok:
            return 1
        if self.failed:
            return 0
        return -1


Continuation = Callable[[RequestResult], None]
