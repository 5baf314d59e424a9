"""
Consent gating for profile operations.

Operations wrapped with require_consent become no-ops while the user has
opted out: nothing is encoded, queued or sent, and the call returns None.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ConsentState:
    """Opt-in/opt-out flag for one client session."""

    def __init__(self, opted_out: bool = False) -> None:
        self._opted_out = opted_out

    def has_opted_out(self) -> bool:
        return self._opted_out

    def opt_out(self) -> None:
        self._opted_out = True

    def opt_in(self) -> None:
        self._opted_out = False


def require_consent(method: F) -> F:
    """Skip the wrapped method when ``self.consent`` reports opt-out."""

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        if self.consent.has_opted_out():
            logger.debug(
                "Profile operation skipped, user opted out",
                extra={"operation": method.__name__},
            )
            return None
        return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
