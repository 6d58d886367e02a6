"""Vectura Infra Observability: structlog logging configuration."""

from vectura.infra.observability.logging import (
    LoggingSettings,
    SensitiveDataProcessor,
    bind_request_context,
    configure_logging,
    get_logger,
    get_logging_settings,
)

__all__ = [
    "LoggingSettings",
    "SensitiveDataProcessor",
    "bind_request_context",
    "configure_logging",
    "get_logger",
    "get_logging_settings",
]
