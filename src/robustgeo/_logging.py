# Andy Zhao
"""
Package logging.

The library only attaches a NullHandler. Setting ROBUSTGEO_RANSAC_DEBUG=1
prints the engines' debug trace (every improved hypothesis) to stderr.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

DEBUG_ENV = "ROBUSTGEO_RANSAC_DEBUG"

_debug_handler: Optional[logging.Handler] = None


def enable_debug_logging(level: int = logging.DEBUG) -> logging.Logger:
    global _debug_handler
    logger = logging.getLogger("robustgeo")
    if _debug_handler is None:
        _debug_handler = logging.StreamHandler()
        _debug_handler.setFormatter(logging.Formatter("[%(name)s] %(levelname)s %(message)s"))
    if _debug_handler not in logger.handlers:
        logger.addHandler(_debug_handler)
    logger.setLevel(level)
    return logger


def setup_logging() -> None:
    logging.getLogger("robustgeo").addHandler(logging.NullHandler())
    if os.environ.get(DEBUG_ENV, "0") == "1":
        enable_debug_logging()
