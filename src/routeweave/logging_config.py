"""Logging setup for the routeweave entry points.

stdout carries the language-server stream and CLI JSON, so records always go
to stderr.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return logging.WARNING
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a single stderr handler to the ``routeweave`` logger."""
    logger = logging.getLogger("routeweave")
    resolved = resolve_level(level)
    existing = [h for h in logger.handlers if getattr(h, "_routeweave", False)]
    if existing:
        # Re-bind in case stderr was swapped since the first call.
        existing[0].setStream(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._routeweave = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False
    return logger
