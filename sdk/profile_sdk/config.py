"""
Configuration for the Profile SDK.

Uses pydantic-settings: every option can come from a keyword argument or an
environment variable with the PROFILE_ prefix (PROFILE_TOKEN,
PROFILE_API_HOST, PROFILE_VERBOSE, ...).

Invariants:
    - All settings have sensible defaults except the project token
    - The token is never logged
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from .codec import DEFAULT_TRUNCATE_LENGTH
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class ClientSettings(BaseSettings):
    """Profile client configuration loaded from arguments or environment."""

    # Project
    token: str = Field(default="", description="Project write token")

    # Endpoint
    api_host: str = Field(default="https://api.example.com", description="API base URL")
    engage_path: str = Field(default="/engage/", description="Profile mutation endpoint path")
    request_timeout: float = Field(default=10.0, description="HTTP timeout in seconds")

    # Behavior
    verbose: bool = Field(default=False, description="Request JSON status bodies")
    save_referrer: bool = Field(default=True, description="Attach initial referrer to profile sets")
    truncate_length: int = Field(
        default=DEFAULT_TRUNCATE_LENGTH,
        ge=1,
        description="Maximum length of any string value in a request",
    )

    # Pending queue persistence - empty = in-memory only
    store_path: Optional[str] = Field(default=None, description="SQLite file for pending mutations")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json, text)")

    model_config = {"env_prefix": "PROFILE_"}

    @field_validator("api_host")
    @classmethod
    def _check_api_host(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_host must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("engage_path")
    @classmethod
    def _check_engage_path(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @property
    def engage_url(self) -> str:
        """Full URL for profile mutation requests."""
        return f"{self.api_host}{self.engage_path}"

    def get(self, option: str) -> Any:
        """Look up one option by name.

        Raises:
            ConfigurationError: If the option does not exist
        """
        if option not in type(self).model_fields:
            raise ConfigurationError(f"Unknown configuration option '{option}'", option=option)
        return getattr(self, option)

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Profile client configuration loaded",
            extra={
                "api_host": self.api_host,
                "engage_path": self.engage_path,
                "verbose": self.verbose,
                "save_referrer": self.save_referrer,
                "truncate_length": self.truncate_length,
                "store_path": self.store_path,
                "token_set": bool(self.token),
            },
        )


def load_settings(**overrides: Any) -> ClientSettings:
    """Build settings from the environment plus keyword overrides.

    Raises:
        ConfigurationError: If any option is invalid
    """
    try:
        settings = ClientSettings(**overrides)
    except PydanticValidationError as e:
        first = e.errors()[0]
        option = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(f"Invalid configuration: {first.get('msg')}", option=option) from e

    if not settings.token:
        logger.warning("No project token configured; the server will reject profile requests")
    return settings


def setup_logging(settings: ClientSettings) -> None:
    """Configure logging for applications embedding the SDK.

    Args:
        settings: Client settings (log_level, log_format)
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        import json_log_formatter

        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    sdk_logger = logging.getLogger("profile_sdk")
    sdk_logger.setLevel(level)
    sdk_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
