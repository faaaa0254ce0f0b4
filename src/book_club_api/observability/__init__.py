"""Logfire observability for the Book Club API."""

import logging

import logfire

from ..config import Settings

logger = logging.getLogger(__name__)

_configured = False


def initialize_observability(settings: Settings) -> None:
    """Configure Logfire once per process."""
    global _configured  # noqa: PLW0603
    if _configured:
        logger.debug("Observability already configured")
        return

    logfire.configure(
        token=settings.logfire_token,
        service_name=settings.app_name,
        service_version=settings.app_version,
        environment=settings.environment,
        send_to_logfire=settings.logfire_send,
        console=None if settings.logfire_console else False,
    )
    _configured = True

    # Optionally instrument system metrics
    if settings.environment == "production" and settings.logfire_send:
        logfire.instrument_system_metrics()


__all__ = ["initialize_observability", "logfire"]
