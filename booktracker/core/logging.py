# booktracker/core/logging.py

"""Logging helpers.

Every module asks for its logger through `get_logger` so that all output
shares one handler and format. The level comes from `LOG_LEVEL`.
"""
from __future__ import annotations

import logging
import os
import threading

ROOT_LOGGER = "booktracker"

_LOCK = threading.Lock()
_CONFIGURED = False


def configure(level_name: str | None = None) -> logging.Logger:
    global _CONFIGURED
    root = logging.getLogger(ROOT_LOGGER)
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    with _LOCK:
        if not _CONFIGURED:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter("[booktracker] %(asctime)s %(levelname)s %(name)s %(message)s")
            )
            root.addHandler(handler)
            _CONFIGURED = True
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    if not _CONFIGURED:
        configure()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = ["configure", "get_logger"]
