"""
Logging Configuration
Process-wide log format for the API and pipeline workers.
"""

import logging
import sys
from typing import Optional

from knock.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure root logging once and return the package logger."""
    level_name = (level or settings.LOG_LEVEL or "INFO").upper()
    if settings.DEBUG:
        level_name = "DEBUG"

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logger = logging.getLogger("knock")
    logger.debug(f"Logging configured with level {level_name}")
    return logger
