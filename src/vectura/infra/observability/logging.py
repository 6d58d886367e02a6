"""Structured logging configuration using structlog.

Domain and application modules log through the standard library
(``logging.getLogger(__name__)`` with snake_case event names and
``extra={...}`` fields). This module routes those records through the same
structlog processor chain as native structlog loggers, so every entry
comes out in one format:

- JSON output for production environments
- Console output with colors for development
- Request context (correlation id, user, agency) merged from contextvars
- Sensitive data redaction (tokens, passwords, raw claim sets)

Usage:
    # During application startup
    from vectura.infra.observability.logging import configure_logging
    configure_logging()

    # In infrastructure code
    from vectura.infra.observability import get_logger
    logger = get_logger(__name__)
    logger.info("request_started", path="/shipments", method="POST")
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from uuid import UUID

Processor = structlog.types.Processor

# Field names whose values never reach a log sink.
SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "access_token",
        "authorization",
        "claims",
        "secret",
        "bearer",
        "credential",
        "password_hash",
    }
)

REDACTED_VALUE: str = "***REDACTED***"

_VALID_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class LoggingSettings(BaseSettings):
    """Logging configuration from environment variables.

    Environment Variables:
        LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        ENVIRONMENT: development, staging, production or test. Production
            switches the renderer to JSON.

    Example:
        >>> LoggingSettings(log_level="debug", environment="production").use_json_logs
        True
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        return v.upper() if isinstance(v, str) else str(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v not in _VALID_LEVELS:
            msg = f"log_level must be one of {sorted(_VALID_LEVELS)}"
            raise ValueError(msg)
        return v

    @property
    def use_json_logs(self) -> bool:
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


class SensitiveDataProcessor:
    """Structlog processor redacting sensitive fields from the event dict.

    A key is sensitive when it is listed in SENSITIVE_FIELDS (case-insensitive)
    or contains "password" or "token".

    Example:
        >>> SensitiveDataProcessor()(None, "info", {"event": "x", "claims": {"sub": "1"}})
        {'event': 'x', 'claims': '***REDACTED***'}
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict.keys()):
            if self._is_sensitive(key):
                event_dict[key] = REDACTED_VALUE
        return event_dict

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        return "password" in key_lower or "token" in key_lower


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached LoggingSettings.

    Clear cache with ``get_logging_settings.cache_clear()`` for testing.
    """
    return LoggingSettings()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
    ]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Call once at process startup.

    Args:
        settings: Explicit settings. Loaded from the environment when omitted.
    """
    if settings is None:
        settings = get_logging_settings()

    renderer: Processor
    if settings.use_json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Stdlib records carry their structured fields in ``extra``.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
            *_shared_processors(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level_int)


def bind_request_context(
    correlation_id: str,
    user_id: UUID | None = None,
    agency_id: UUID | None = None,
) -> None:
    """Bind per-request fields so every log line of the request carries them."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id,
        user_id=str(user_id) if user_id else None,
        agency_id=str(agency_id) if agency_id else None,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger bound to ``name``.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("request_started", path="/health")
    """
    logger = structlog.get_logger()
    if name is not None:
        logger = logger.bind(logger=name)
    return logger
