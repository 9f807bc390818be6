# chatpulse/core/logging.py

import logging
import os
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

# Third-party loggers and the level the relay runs them at
LIBRARY_LEVELS = {
    "redis": logging.WARNING,
    "asyncio": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def setup_logging() -> None:
    """
    Route relay logs to stdout at LOG_LEVEL (INFO unless set).

    When a server has already installed root handlers only the level is
    changed, so running under ``uvicorn`` does not print every line twice.
    Library chatter is capped per LIBRARY_LEVELS.
    """
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the relay's root configuration; call setup_logging() first."""
    return logging.getLogger(name)
