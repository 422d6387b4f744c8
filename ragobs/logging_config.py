"""Logging setup for hosts that embed RagObs."""

import logging
from typing import Optional

from .config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_level: Optional[str] = None) -> None:
    """Send ``ragobs`` logs to one stream handler at the given level.

    Falls back to ``RagObsSettings.log_level`` when no level is passed.
    """
    if log_level is None:
        log_level = get_settings().log_level

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger = logging.getLogger("ragobs")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
