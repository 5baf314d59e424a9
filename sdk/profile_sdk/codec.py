"""
Wire codecs for profile requests.

- encode_dates: datetimes -> "YYYY-MM-DDTHH:MM:SS" strings (UTC)
- truncate: clip every string to a maximum length
- json_encode / base64_encode: the request body encoding

All functions return new structures and never mutate their input.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

DEFAULT_TRUNCATE_LENGTH = 255

_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_date(value: date) -> str:
    """Format a date or datetime the way the server expects."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime(_DATE_FORMAT)
    return datetime(value.year, value.month, value.day).strftime(_DATE_FORMAT)


def encode_dates(obj: Any) -> Any:
    """Replace every date/datetime in ``obj`` with its string form."""
    if isinstance(obj, date):
        return format_date(obj)
    if isinstance(obj, Mapping):
        return {k: encode_dates(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [encode_dates(v) for v in obj]
    return obj


def truncate(obj: Any, length: int = DEFAULT_TRUNCATE_LENGTH) -> Any:
    """Clip every string value in ``obj`` to ``length`` characters.

    Keys are left alone. Never raises for unknown types; they pass through.
    """
    if isinstance(obj, str):
        return obj[:length]
    if isinstance(obj, Mapping):
        return {k: truncate(v, length) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [truncate(v, length) for v in obj]
    return obj


def json_encode(obj: Any) -> str:
    return json.dumps(encode_dates(obj), separators=(",", ":"), default=str)


def base64_encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def base64_decode(data: str) -> str:
    return base64.b64decode(data.encode("ascii")).decode("utf-8")


def encode_request(obj: Any) -> str:
    """JSON then base64 encode a wire request."""
    return base64_encode(json_encode(obj))


def decode_request(data: str) -> Any:
    """Inverse of encode_request (used by tests and debugging tools)."""
    return json.loads(base64_decode(data))
