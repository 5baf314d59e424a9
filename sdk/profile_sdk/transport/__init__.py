"""
Request transports for the Profile SDK.

- Transport: protocol consumed by the dispatcher
- HttpTransport: httpx-based delivery
- InMemoryTransport: recording transport for tests
"""

from .base import Transport
from .http import HttpTransport
from .memory import InMemoryTransport, RecordedRequest

__all__ = [
    "Transport",
    "HttpTransport",
    "InMemoryTransport",
    "RecordedRequest",
]
