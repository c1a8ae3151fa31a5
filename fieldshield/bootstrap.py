from __future__ import annotations

import logging

from fieldshield.config import Settings, get_settings
from fieldshield.logging import configure_logging
from fieldshield.otel import setup_otel


logger = logging.getLogger("fieldshield.lifecycle")


def configure(settings: Settings | None = None) -> Settings:
    """Install JSON logging and, when enabled, tracing for a host process."""

    resolved = settings or get_settings()
    configure_logging()
    if resolved.otel_enabled:
        setup_otel(resolved.service_name, True)
    logger.info("shield.configured")
    return resolved
