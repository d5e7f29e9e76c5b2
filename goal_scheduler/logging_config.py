"""Centralized logging configuration."""
from __future__ import annotations

import logging
import os
from logging.config import dictConfig


def configure_logging(*, log_level: str | None = None) -> None:
    """Configure logging once at startup (level from LOG_LEVEL, default INFO)."""
    if getattr(configure_logging, "_configured", False):
        return

    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": level,
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s", level)
    setattr(configure_logging, "_configured", True)
