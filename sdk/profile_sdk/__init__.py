"""
Profile SDK - client-side mutation dispatcher for user profiles.

This SDK lets callers mutate a remote user profile (set, set_once, unset,
increment, append, union, delete) before the user's identity is known:
- Mutations made before identify() are buffered per action kind
- identify() flushes the buffer through the same dispatch path
- Failed flush requests go back into the buffer for the next flush

Example:
    >>> from profile_sdk import ProfileClient, load_settings
    >>>
    >>> async with ProfileClient(load_settings(token="abc")) as people:
    ...     people.set({"plan": "premium"})
    ...     people.union("tags", "beta")
    ...     people.identify("user:42")

Invariants:
    - No request is sent before identity is resolved
    - No buffered mutation is dropped on a transport failure
    - Reserved properties never reach the wire from caller input

Version: 1.0.0
"""

__version__ = "1.0.0"

from .actions import ActionKind, is_reserved_property
from .client import ProfileClient
from .config import ClientSettings, load_settings, setup_logging
from .consent import ConsentState
from .dispatcher import Dispatcher
from .errors import (
    ConfigurationError,
    ProfileError,
    StoreError,
    TransportError,
    UsageError,
    ValidationError,
)
from .flush import FlushCoordinator, FlushReport
from .identity import IdentityState
from .results import RequestOutcome, RequestResult
from .store import InMemoryPendingStore, PendingMutationStore, SqlitePendingStore
from .transport import HttpTransport, InMemoryTransport, Transport

__all__ = [
    # Version
    "__version__",
    # Client
    "ProfileClient",
    "ActionKind",
    "is_reserved_property",
    # Configuration
    "ClientSettings",
    "load_settings",
    "setup_logging",
    # Core
    "IdentityState",
    "ConsentState",
    "Dispatcher",
    "FlushCoordinator",
    "FlushReport",
    "RequestOutcome",
    "RequestResult",
    # Stores
    "PendingMutationStore",
    "InMemoryPendingStore",
    "SqlitePendingStore",
    # Transports
    "Transport",
    "HttpTransport",
    "InMemoryTransport",
    # Errors
    "ProfileError",
    "ValidationError",
    "UsageError",
    "TransportError",
    "StoreError",
    "ConfigurationError",
]
