"""
Flush coordinator for buffered profile mutations.

Once identity is resolved, every pending queue is drained through the
dispatcher. A queue entry leaves the store before its request is sent, and
goes back into the store if the request fails, so a mutation is either
delivered or kept for the next flush.

Merged kinds (SET, SET_ONCE, UNSET, ADD, UNION) go out as one request per
kind. APPEND entries go out one request each, newest first, because the
server cannot concatenate lists.

Invariants:
    - Nothing is flushed before identity is resolved
    - Removal is compare-and-remove on the value just read
    - A failed request re-enqueues exactly its own, untransformed entry
    - A transport that raises counts as a failed request; the walk goes on
    - The APPEND walk persists the store once, not once per entry
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .actions import MERGED_KINDS, ActionKind
from .dispatcher import Dispatcher
from .errors import TransportError, UsageError
from .results import Continuation, RequestResult
from .store.base import PendingMutationStore

logger = logging.getLogger(__name__)


def _unset_names(queued: Mapping[str, Any]) -> list[str]:
    return list(queued.keys())


# Queue value -> dispatch payload, for kinds stored in another shape.
_TRANSFORMS: dict[ActionKind, Callable[[Any], Any]] = {
    ActionKind.UNSET: _unset_names,
}


@dataclass
class FlushReport:
    """What one flush() sent.

    Attributes:
        requests: Number of requests issued per action kind
        skipped: Whether the flush was refused (identity unresolved)
    """

    requests: dict[ActionKind, int] = field(default_factory=dict)
    skipped: bool = False

    @property
    def total(self) -> int:
        return sum(self.requests.values())


class FlushCoordinator:
    """Drains the pending store after identify().

    Example:
        >>> flusher = FlushCoordinator(dispatcher)
        >>> report = flusher.flush({ActionKind.SET: on_set_result})
        >>> report.total
        1
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def store(self) -> PendingMutationStore:
        return self._dispatcher.store

    def flush(
        self,
        callbacks: Optional[Mapping[ActionKind, Continuation]] = None,
    ) -> FlushReport:
        """Replay every pending queue.

        Returns before any request completes. Order among kinds is not
        significant.

        Args:
            callbacks: Optional per-kind continuations

        Returns:
            FlushReport with request counts
        """
        callbacks = callbacks or {}
        report = FlushReport()

        if not self._dispatcher.identity.is_resolved():
            self._dispatcher.report(
                UsageError("Pending mutations can only be flushed after identify()", operation="flush")
            )
            report.skipped = True
            return report

        for kind in MERGED_KINDS:
            if self._flush_one_queue(kind, callbacks.get(kind)):
                report.requests[kind] = 1

        appended = self._flush_append_queue(callbacks.get(ActionKind.APPEND))
        if appended:
            report.requests[ActionKind.APPEND] = appended

        if report.total:
            logger.info(
                "Flushed pending profile mutations",
                extra={"requests": {k.value: n for k, n in report.requests.items()}},
            )
        return report

    def _flush_one_queue(self, kind: ActionKind, callback: Optional[Continuation]) -> bool:
        queued = self.store.current_queue_for(kind)
        if not queued:
            return False

        self.store.remove_from_queue(kind, queued)
        transform = _TRANSFORMS.get(kind)
        params = transform(queued) if transform else queued

        self._send(kind, params, self._requeue_on_failure(kind, queued, callback))
        return True

    def _flush_append_queue(self, callback: Optional[Continuation]) -> int:
        queued = self.store.current_queue_for(ActionKind.APPEND)
        if not queued:
            return 0

        for entry in reversed(queued):
            self.store.remove_from_queue(ActionKind.APPEND, entry, persist=False)
            self._send(
                ActionKind.APPEND,
                entry,
                self._requeue_on_failure(ActionKind.APPEND, entry, callback),
            )

        # Save the shortened append queue
        self.store.persist()
        return len(queued)

    def _send(self, kind: ActionKind, params: Any, on_result: Continuation) -> None:
        """Dispatch one flushed entry; a raising transport counts as a failed request."""
        answered = False

        def once(result: RequestResult) -> None:
            nonlocal answered
            answered = True
            on_result(result)

        try:
            self._dispatcher.dispatch(kind, params, once)
        except Exception as e:
            logger.exception(
                "Profile flush dispatch raised",
                extra={"action": kind.value},
            )
            if not answered:
                on_result(RequestResult.failure(TransportError(f"Dispatch failed: {e}")))

    def _requeue_on_failure(
        self,
        kind: ActionKind,
        queued: Any,
        callback: Optional[Continuation],
    ) -> Continuation:
        def on_result(result: RequestResult) -> None:
            if result.failed:
                logger.warning(
                    "Profile flush request failed, re-queueing",
                    extra={"action": kind.value, "error": str(result.error)},
                )
                self.store.enqueue(kind, queued)
            if callback is not None:
                callback(result)

        return on_result
