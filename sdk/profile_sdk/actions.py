"""
Action kinds and reserved properties for profile mutations.

Each profile mutation is addressed by one action kind. The enum value is
the key the server expects in the wire request, e.g. ``{"$set": {...}}``.

Invariants:
    - Action kind values never change (they are the wire protocol)
    - Reserved properties never reach a mutation payload
"""

from __future__ import annotations

from enum import Enum

TOKEN_KEY = "$token"
DISTINCT_ID_KEY = "$distinct_id"

RESERVED_PROPERTIES = frozenset({DISTINCT_ID_KEY, TOKEN_KEY})


class ActionKind(Enum):
    """Profile mutation verbs."""

    SET = "$set"
    SET_ONCE = "$set_once"
    UNSET = "$unset"
    ADD = "$add"
    APPEND = "$append"
    UNION = "$union"
    DELETE = "$delete"

    @property
    def is_queueable(self) -> bool:
        """Whether mutations of this kind may be buffered before identify."""
        return self is not ActionKind.DELETE


# Kinds whose pending queue holds a single merged payload.
MERGED_KINDS = (
    ActionKind.SET,
    ActionKind.SET_ONCE,
    ActionKind.UNSET,
    ActionKind.ADD,
    ActionKind.UNION,
)


def is_reserved_property(name: object) -> bool:
    """Return True if ``name`` may not be set by callers."""
    return name in RESERVED_PROPERTIES
