"""Logging setup for entry points."""

import logging

from content_rag.core.config import Settings

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Library modules only call ``logging.getLogger(__name__)``; scripts call this once.
    """
    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    # Client libraries log every request at INFO
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
