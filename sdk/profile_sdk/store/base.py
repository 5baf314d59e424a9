"""
Protocol for pending mutation stores.

Mutations made before the profile identity is known are buffered in a
store, one queue per action kind, and replayed by the flush coordinator.

Queue shapes:
    - SET, SET_ONCE, ADD, UNION: one merged dict of name -> value
    - UNSET: one dict of name -> True
    - APPEND: ordered list of payload dicts, one per original call

Concurrency contract:
    - current_queue_for() and remove_from_queue() are atomic
    - remove_from_queue() removes exactly the value previously read, so an
      enqueue that lands between the read and the removal is kept

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the merge policy identical across implementations
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from ..actions import ActionKind


@runtime_checkable
class PendingMutationStore(Protocol):
    """Durable per-action-kind queue of pending profile mutations.

    Example:
        >>> store = InMemoryPendingStore()
        >>> store.enqueue(ActionKind.SET, {"plan": "pro"})
        >>> store.current_queue_for(ActionKind.SET)
        {'plan': 'pro'}
    """

    @abstractmethod
    def enqueue(self, kind: ActionKind, payload: Any) -> None:
        """Merge a mutation payload into the queue for ``kind``.

        Args:
            kind: Action kind (DELETE is not queueable)
            payload: Mutation payload (list of names for UNSET)

        Raises:
            ValueError: If kind cannot be queued
        """
        ...

    @abstractmethod
    def current_queue_for(self, kind: ActionKind) -> Any:
        """Return a copy of the queue for ``kind``.

        Returns:
            dict for merged kinds, list for APPEND; empty when nothing queued
        """
        ...

    @abstractmethod
    def remove_from_queue(self, kind: ActionKind, payload: Any, persist: bool = True) -> None:
        """Remove exactly ``payload`` (as previously read) from the queue.

        Args:
            kind: Action kind
            payload: Value previously returned by current_queue_for(), or
                one APPEND entry
            persist: Whether to persist after removal
        """
        ...

    @abstractmethod
    def persist(self) -> None:
        """Write the current state to durable storage (if any)."""
        ...
