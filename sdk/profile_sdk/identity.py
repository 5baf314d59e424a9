"""
Identity gate for profile mutations.

Holds whether the profile identity has been resolved for this session.
One IdentityState belongs to one client session; nothing here is global,
so several sessions can live side by side.

Invariants:
    - Resolution is monotonic: once resolved, never unresolved
    - current_profile_id() before resolution is the anonymous id, which is
      good enough to preview or queue a request but never to send one
"""

from __future__ import annotations

import logging
import uuid

logger = logging.getLogger(__name__)


class IdentityState:
    """Session-scoped identity flag plus best-known profile id.

    Example:
        >>> identity = IdentityState()
        >>> identity.is_resolved()
        False
        >>> identity.resolve("user:42")
        True
        >>> identity.current_profile_id()
        'user:42'
    """

    def __init__(self, anonymous_id: str | None = None) -> None:
        """Initialize an unresolved identity.

        Args:
            anonymous_id: Id used before resolution (generated if omitted)
        """
        self._anonymous_id = anonymous_id or str(uuid.uuid4())
        self._profile_id: str | None = None
        self._resolved = False

    def is_resolved(self) -> bool:
        return self._resolved

    def current_profile_id(self) -> str | None:
        if self._resolved:
            return self._profile_id
        return self._anonymous_id

    @property
    def anonymous_id(self) -> str:
        return self._anonymous_id

    def resolve(self, profile_id: str) -> bool:
        """Resolve the identity.

        Calling again with another id switches the profile but the state
        stays resolved.

        Args:
            profile_id: The profile identifier

        Returns:
            True if this call moved the state from unresolved to resolved

        Raises:
            ValueError: If profile_id is empty
        """
        if not profile_id:
            raise ValueError("profile_id must be a non-empty string")

        first = not self._resolved
        if not first and profile_id != self._profile_id:
            logger.info(
                "Profile identity changed",
                extra={"previous": self._profile_id, "profile_id": profile_id},
            )
        self._profile_id = profile_id
        self._resolved = True
        return first

    def __repr__(self) -> str:
        return f"IdentityState(resolved={self._resolved}, profile_id={self.current_profile_id()!r})"
