"""
Mutation encoder for the Profile SDK.

Turns a caller's property argument into a normalized mutation payload for
one action kind. The argument shape (single name/value pair or a mapping) is
resolved once by coerce_properties(); every encoder below works on a plain
dict of name -> value.

Invariants:
    - Encoders are pure: no I/O, no session state
    - Reserved properties are always filtered out
    - Validation problems are returned, never raised
    - UNION values are always lists
    - UNSET payloads are always lists of names
"""

from __future__ import annotations

import math
import numbers
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .actions import ActionKind, is_reserved_property
from .errors import ValidationError


class _Missing:
    """Marker for an omitted value argument."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

# Leading numeric prefix, the way a browser's parseFloat reads a string.
_NUMERIC_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass
class EncodedMutation:
    """Result of encoding one caller call.

    Attributes:
        kind: Target action kind
        payload: Normalized mutation payload
        errors: Validation errors for dropped properties
    """

    kind: ActionKind
    payload: Any
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.payload


def coerce_properties(prop: Any, value: Any = MISSING, default: Any = None) -> dict[str, Any]:
    """Normalize a (name, value) pair or a mapping into a dict.

    Args:
        prop: Property name or mapping of names to values
        value: Value for a single property name
        default: Value used when ``value`` is omitted

    Returns:
        New dict of property names to values
    """
    if isinstance(prop, Mapping):
        return dict(prop)
    if value is MISSING:
        value = default
    return {prop: value}


def strip_reserved(properties: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``properties`` without reserved keys."""
    return {k: v for k, v in properties.items() if not is_reserved_property(k)}


def parse_number(value: Any) -> int | float | None:
    """Best-effort numeric parse.

    Numbers are returned as-is, strings are read up to the end of their
    leading numeric prefix. Booleans, NaN and anything else give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        number = float(value)
        return None if math.isnan(number) else number
    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if not match:
            return None
        text = match.group(1)
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)
    return None


def ensure_list(value: Any) -> list[Any]:
    """Promote a scalar to a one-element list; lists pass through."""
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def encode_set(properties: Mapping[str, Any]) -> EncodedMutation:
    return EncodedMutation(ActionKind.SET, strip_reserved(properties))


def encode_set_once(properties: Mapping[str, Any]) -> EncodedMutation:
    return EncodedMutation(ActionKind.SET_ONCE, strip_reserved(properties))


def encode_append(properties: Mapping[str, Any]) -> EncodedMutation:
    return EncodedMutation(ActionKind.APPEND, strip_reserved(properties))


def encode_union(properties: Mapping[str, Any]) -> EncodedMutation:
    """Encode a union; every value becomes a list."""
    payload = {k: ensure_list(v) for k, v in strip_reserved(properties).items()}
    return EncodedMutation(ActionKind.UNION, payload)


def encode_add(properties: Mapping[str, Any]) -> EncodedMutation:
    """Encode an increment.

    Non-numeric amounts are dropped from the payload and reported as one
    ValidationError each; the remaining keys still go through.
    """
    payload: dict[str, Any] = {}
    errors: list[ValidationError] = []

    for name, amount in strip_reserved(properties).items():
        number = parse_number(amount)
        if number is None:
            errors.append(
                ValidationError(
                    f"Invalid increment value for '{name}': must be a number",
                    property_name=name,
                    value=amount,
                )
            )
            continue
        payload[name] = number

    return EncodedMutation(ActionKind.ADD, payload, errors)


def encode_unset(names: str | Iterable[str]) -> EncodedMutation:
    """Encode an unset from one name or a sequence of names."""
    if isinstance(names, str):
        names = [names]
    payload = [name for name in names if not is_reserved_property(name)]
    return EncodedMutation(ActionKind.UNSET, payload)


def encode_delete(profile_id: str) -> EncodedMutation:
    return EncodedMutation(ActionKind.DELETE, profile_id)


_ENCODERS = {
    ActionKind.SET: encode_set,
    ActionKind.SET_ONCE: encode_set_once,
    ActionKind.ADD: encode_add,
    ActionKind.APPEND: encode_append,
    ActionKind.UNION: encode_union,
}


def encode_properties(kind: ActionKind, properties: Mapping[str, Any]) -> EncodedMutation:
    """Encode a property mapping for any mapping-shaped action kind.

    Raises:
        ValueError: If ``kind`` does not take a property mapping
    """
    try:
        encoder = _ENCODERS[kind]
    except KeyError:
        raise ValueError(f"Action kind {kind.name} does not take a property mapping") from None
    return encoder(properties)
