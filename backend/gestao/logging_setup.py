# Overview: One-time logging configuration for the Flask app and service modules.

from __future__ import annotations

import logging
import logging.config

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level_name: str = "INFO") -> None:
    """
    Configure the root logger with a single console handler.

    Service modules use logging.getLogger(__name__) and inherit this setup;
    Flask's app.logger propagates to the same handler.
    """
    level = getattr(logging, str(level_name).upper(), logging.INFO)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": DEFAULT_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            # SQL echo is noisy; only surface warnings
            "sqlalchemy.engine": {"level": logging.WARNING},
        },
    })
