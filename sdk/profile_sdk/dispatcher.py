"""
Dispatcher for profile mutations.

Builds the wire request for one mutation and routes it:

    identity unresolved -> pending store, continuation gets DEFERRED now
    identity resolved   -> transport, continuation gets the real outcome later

Either way dispatch() returns the truncated wire request at once, for
inspection and logging. It never waits for the network and never raises for
delivery problems.

Invariants:
    - No transport call happens before identity is resolved
    - Queued payloads are the untruncated mutation payloads
    - Sent requests carry $token and the resolved $distinct_id
    - DELETE is never queued
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .actions import DISTINCT_ID_KEY, TOKEN_KEY, ActionKind
from .codec import encode_dates, encode_request, truncate
from .config import ClientSettings
from .errors import ProfileError, UsageError
from .identity import IdentityState
from .results import Continuation, RequestResult
from .store.base import PendingMutationStore
from .transport.base import Transport

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[ProfileError], None]


def build_wire_request(
    kind: ActionKind,
    payload: Any,
    token: str,
    profile_id: Optional[str],
) -> dict[str, Any]:
    """Compose ``{kind: payload, $token, $distinct_id}``."""
    return {
        kind.value: payload,
        TOKEN_KEY: token,
        DISTINCT_ID_KEY: profile_id,
    }


class Dispatcher:
    """Routes encoded mutations to the pending store or the transport.

    Attributes:
        settings: Client settings (token, endpoint, truncation)
        identity: Session identity gate
        store: Pending mutation store
        transport: Request transport
    """

    def __init__(
        self,
        settings: ClientSettings,
        identity: IdentityState,
        store: PendingMutationStore,
        transport: Transport,
        report_error: Optional[ErrorReporter] = None,
    ) -> None:
        self.settings = settings
        self.identity = identity
        self.store = store
        self.transport = transport
        self._report_error = report_error

    def report(self, error: ProfileError) -> None:
        """Send a validation or usage error to the diagnostic channel."""
        (self._report_error or log_error)(error)

    def dispatch(
        self,
        kind: ActionKind,
        payload: Any,
        continuation: Optional[Continuation] = None,
    ) -> dict[str, Any]:
        """Send or queue one mutation.

        Args:
            kind: Action kind
            payload: Normalized mutation payload
            continuation: Called with the RequestResult

        Returns:
            The truncated wire request
        """
        request = build_wire_request(
            kind,
            payload,
            self.settings.token,
            self.identity.current_profile_id(),
        )
        truncated = truncate(encode_dates(request), self.settings.truncate_length)

        if not self.identity.is_resolved():
            self._defer(kind, payload, truncated, continuation)
            return truncated

        logger.debug(
            "Profile request",
            extra={"action": kind.value, "request": truncated},
        )
        self.transport.send(
            self.settings.engage_url,
            {"data": encode_request(truncated)},
            self._attach_payload(continuation, truncated),
        )
        return truncated

    def _defer(
        self,
        kind: ActionKind,
        payload: Any,
        truncated: dict[str, Any],
        continuation: Optional[Continuation],
    ) -> None:
        if not kind.is_queueable:
            self.report(
                UsageError(
                    f"{kind.name} cannot be queued before identify()",
                    operation=kind.name.lower(),
                )
            )
            return

        self.store.enqueue(kind, payload)
        if continuation is not None:
            continuation(RequestResult.deferred(truncated))

    def _attach_payload(
        self,
        continuation: Optional[Continuation],
        truncated: dict[str, Any],
    ) -> Optional[Continuation]:
        if continuation is None:
            return None

        def forward(result: RequestResult) -> None:
            continuation(result.with_payload(truncated))

        return forward


def log_error(error: ProfileError) -> None:
    """Default diagnostic channel: log the error once."""
    logger.error(error.message, extra={"code": error.code, "details": error.details})
