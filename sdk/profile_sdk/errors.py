"""
Error types for the Profile SDK.

This module defines all exception types used by the SDK:
- ProfileError: Base exception
- ValidationError: A property value was rejected at encode time
- UsageError: An operation was called in the wrong session state
- TransportError: A request could not be delivered
- StoreError: The pending mutation store failed
- ConfigurationError: Invalid client settings

Validation, usage and transport errors are reported as values (logged,
handed to the error handler or attached to a RequestResult) rather than
raised. Store and configuration errors are raised.

Invariants:
    - All errors inherit from ProfileError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProfileError(Exception):
    """Base exception for all Profile SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "PROFILE_ERROR"
        self.details = details or {}


class ValidationError(ProfileError):
    """A property value was rejected by the encoder.

    Raised (reported) when:
    - An increment amount is not numeric
    - A charge amount is not numeric
    """

    def __init__(
        self,
        message: str,
        property_name: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"property": property_name, "value": repr(value)},
        )
        self.property_name = property_name
        self.value = value


class UsageError(ProfileError):
    """Operation not allowed in the current session state.

    Reported when:
    - delete_user() is called before identify()
    - A flush is requested before identity is resolved
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="USAGE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


class TransportError(ProfileError):
    """A request was not accepted by the server.

    Attached to failure results when:
    - The server is unreachable or the request times out
    - The server answers with a non-2xx status
    - The server rejects the payload
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class StoreError(ProfileError):
    """Pending mutation store failure.

    Raised when:
    - The durable store cannot be opened
    - A snapshot cannot be read or written
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"path": path},
        )
        self.path = path


class ConfigurationError(ProfileError):
    """Invalid client configuration."""

    def __init__(self, message: str, option: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"option": option},
        )
        self.option = option
