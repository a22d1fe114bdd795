"""Logging setup for the API process. Modules log through logging.getLogger(__name__)."""

import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = None) -> None:
    """Attach one stream handler to the app logger. Safe to call more than once."""
    global _configured
    logger = logging.getLogger("app")
    logger.setLevel((level or settings.log_level).upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    _configured = True
