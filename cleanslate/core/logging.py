"""Logging and observability configuration using Pydantic Logfire.

All modules use Python's standard logging library (logging.getLogger(__name__)),
and Logfire captures and enriches these logs once configured.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})

Structured logging utilities:
    log_with_context(logger, "info", "Message", owner_id="123", appointment_id="456")
"""

import logging

import logfire
from fastapi import FastAPI

from cleanslate.core.config import settings


def configure_logfire() -> None:
    """Configure Pydantic Logfire with token from environment."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="cleanslate",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def instrument_fastapi(app: FastAPI) -> None:
    """Add Logfire instrumentation to FastAPI application."""
    logfire.instrument_fastapi(app)
    logger = logging.getLogger(__name__)
    logger.info("FastAPI instrumentation configured")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Create a custom span for service layer functions.

    Usage:
        with span("appointment_service.create_appointment", owner_id=owner_id):
            ...
    """
    return logfire.span(name, **attributes)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Additional context fields (owner_id, appointment_id, operation, etc.)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)
