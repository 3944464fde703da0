"""Logging configuration for the phishing analyzer."""

from __future__ import annotations

import logging
import logging.config
import sys
from typing import Any

_PACKAGE_LOGGER = "phish_email_analyzer"


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler for the package logger."""

    resolved = str(level or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(resolved), int):
        resolved = "INFO"

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s %(levelname)s %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": resolved,
                "formatter": "simple",
                "stream": sys.stderr,
            },
        },
        "loggers": {
            _PACKAGE_LOGGER: {
                "level": resolved,
                "handlers": ["console"],
                "propagate": False,
            },
            "LiteLLM": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)
