"""
In-memory pending mutation store.

Implements the merge policy for buffered profile mutations:

    SET       last write wins per key; drops the key from ADD, UNION, UNSET
    SET_ONCE  first write wins per key; drops the key from UNSET
    UNSET     drops the key from every other queue, then records it
    ADD       numeric sum (into a queued numeric SET value if there is one)
    UNION     set union per key, first-seen order kept
    APPEND    one entry per call, in call order

Invariants:
    - Every enqueue persists
    - Readers always get copies, never live queue objects
    - Removal is compare-and-remove (see remove_from_queue)
    - Thread-safe: a reentrant lock guards all state

Subclasses provide durability by overriding _save().
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from ..actions import MERGED_KINDS, ActionKind

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class InMemoryPendingStore:
    """Pending mutation store kept in process memory.

    State is lost on process exit unless a subclass persists it.

    Attributes:
        persist_count: Number of persist() calls (useful in tests)

    Example:
        >>> store = InMemoryPendingStore()
        >>> store.enqueue(ActionKind.ADD, {"logins": 1})
        >>> store.enqueue(ActionKind.ADD, {"logins": 2})
        >>> store.current_queue_for(ActionKind.ADD)
        {'logins': 3}
    """

    def __init__(self) -> None:
        self._queues: dict[ActionKind, dict[str, Any]] = {kind: {} for kind in MERGED_KINDS}
        self._append_queue: list[dict[str, Any]] = []
        self._lock = threading.RLock()
        self.persist_count = 0

    # Reads

    def current_queue_for(self, kind: ActionKind) -> Any:
        with self._lock:
            if kind is ActionKind.APPEND:
                return copy.deepcopy(self._append_queue)
            if kind in self._queues:
                return copy.deepcopy(self._queues[kind])
            return None

    def is_empty(self) -> bool:
        with self._lock:
            return not self._append_queue and not any(self._queues.values())

    def pending_count(self) -> int:
        """Number of queued keys plus queued APPEND entries."""
        with self._lock:
            return len(self._append_queue) + sum(len(q) for q in self._queues.values())

    # Writes

    def enqueue(self, kind: ActionKind, payload: Any) -> None:
        with self._lock:
            if kind is ActionKind.SET:
                self._enqueue_set(payload)
            elif kind is ActionKind.SET_ONCE:
                self._enqueue_set_once(payload)
            elif kind is ActionKind.UNSET:
                self._enqueue_unset(payload)
            elif kind is ActionKind.ADD:
                self._enqueue_add(payload)
            elif kind is ActionKind.UNION:
                self._enqueue_union(payload)
            elif kind is ActionKind.APPEND:
                self._append_queue.append(copy.deepcopy(dict(payload)))
                self._drop_keys(ActionKind.UNSET, payload)
            else:
                raise ValueError(f"Action kind {kind.name} cannot be queued")

            logger.debug(
                "Profile mutation queued",
                extra={"action": kind.value, "keys": _names(payload)},
            )
            self.persist()

    def _enqueue_set(self, payload: Mapping[str, Any]) -> None:
        self._queues[ActionKind.SET].update(copy.deepcopy(dict(payload)))
        # A later set overrides pending increments, unions and unsets.
        for kind in (ActionKind.ADD, ActionKind.UNION, ActionKind.UNSET):
            self._drop_keys(kind, payload)

    def _enqueue_set_once(self, payload: Mapping[str, Any]) -> None:
        queue = self._queues[ActionKind.SET_ONCE]
        for name, value in payload.items():
            if name not in queue:
                queue[name] = copy.deepcopy(value)
        self._drop_keys(ActionKind.UNSET, payload)

    def _enqueue_unset(self, names: Iterable[str]) -> None:
        unset_queue = self._queues[ActionKind.UNSET]
        for name in list(names):
            for kind in (ActionKind.SET, ActionKind.SET_ONCE, ActionKind.ADD, ActionKind.UNION):
                self._queues[kind].pop(name, None)
            for entry in self._append_queue:
                entry.pop(name, None)
            unset_queue[name] = True
        self._append_queue[:] = [entry for entry in self._append_queue if entry]

    def _enqueue_add(self, payload: Mapping[str, Any]) -> None:
        set_queue = self._queues[ActionKind.SET]
        add_queue = self._queues[ActionKind.ADD]
        for name, amount in payload.items():
            if name in set_queue and _is_number(set_queue[name]):
                set_queue[name] += amount
            else:
                add_queue[name] = add_queue.get(name, 0) + amount
        self._drop_keys(ActionKind.UNSET, payload)

    def _enqueue_union(self, payload: Mapping[str, Any]) -> None:
        union_queue = self._queues[ActionKind.UNION]
        merged = []
        for name, values in payload.items():
            if not isinstance(values, (list, tuple)) or not values:
                continue
            queued = union_queue.setdefault(name, [])
            for value in values:
                if value not in queued:
                    queued.append(copy.deepcopy(value))
            merged.append(name)
        self._drop_keys(ActionKind.UNSET, merged)

    def _drop_keys(self, kind: ActionKind, names: Iterable[str]) -> None:
        queue = self._queues[kind]
        for name in list(names):
            queue.pop(name, None)

    def remove_from_queue(self, kind: ActionKind, payload: Any, persist: bool = True) -> None:
        """Compare-and-remove ``payload`` from the queue for ``kind``.

        - SET, SET_ONCE, UNSET: a key goes only if its value is unchanged
        - ADD: the flushed amount is subtracted
        - UNION: the flushed items are removed once each
        - APPEND: the first equal entry is removed
        """
        with self._lock:
            if kind is ActionKind.APPEND:
                for index, entry in enumerate(self._append_queue):
                    if entry == payload:
                        del self._append_queue[index]
                        break
            elif kind is ActionKind.ADD:
                self._subtract(payload)
            elif kind is ActionKind.UNION:
                self._remove_items(payload)
            elif kind in self._queues:
                if kind is ActionKind.UNSET and not isinstance(payload, Mapping):
                    payload = {name: True for name in payload}
                queue = self._queues[kind]
                for name, value in payload.items():
                    if name in queue and queue[name] == value:
                        del queue[name]
            else:
                raise ValueError(f"Action kind {kind.name} has no queue")

            if persist:
                self.persist()

    def _subtract(self, payload: Mapping[str, Any]) -> None:
        queue = self._queues[ActionKind.ADD]
        for name, amount in payload.items():
            if name not in queue:
                continue
            remaining = queue[name] - amount
            if remaining == 0:
                del queue[name]
            else:
                queue[name] = remaining

    def _remove_items(self, payload: Mapping[str, Any]) -> None:
        queue = self._queues[ActionKind.UNION]
        for name, items in payload.items():
            current = queue.get(name)
            if current is None:
                continue
            for item in items:
                if item in current:
                    current.remove(item)
            if not current:
                del queue[name]

    def clear(self) -> None:
        with self._lock:
            for queue in self._queues.values():
                queue.clear()
            self._append_queue.clear()
            self.persist()

    # Persistence

    def persist(self) -> None:
        with self._lock:
            self.persist_count += 1
            self._save()

    def _save(self) -> None:
        """Write state to durable storage. No-op in memory."""

    def snapshot(self) -> dict[str, Any]:
        """Serializable copy of all queues keyed by wire action key."""
        with self._lock:
            data: dict[str, Any] = {
                kind.value: copy.deepcopy(queue) for kind, queue in self._queues.items()
            }
            data[ActionKind.APPEND.value] = copy.deepcopy(self._append_queue)
            return data

    def load_snapshot(self, data: Mapping[str, Any]) -> None:
        """Replace all queues with the contents of a snapshot."""
        with self._lock:
            for kind in MERGED_KINDS:
                self._queues[kind] = dict(data.get(kind.value) or {})
            self._append_queue = [dict(entry) for entry in data.get(ActionKind.APPEND.value) or []]


def _names(payload: Any) -> list[str]:
    if isinstance(payload, Mapping):
        return list(payload.keys())
    if isinstance(payload, str):
        return [payload]
    return list(payload)
