"""
Pending mutation stores for the Profile SDK.

- PendingMutationStore: protocol consumed by the dispatcher and flusher
- InMemoryPendingStore: process-local store (tests, short-lived clients)
- SqlitePendingStore: store that survives process restarts
"""

from .base import PendingMutationStore
from .memory import InMemoryPendingStore
from .sqlite import SqlitePendingStore

__all__ = [
    "PendingMutationStore",
    "InMemoryPendingStore",
    "SqlitePendingStore",
]
