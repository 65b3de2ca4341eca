"""Logging setup shared by the CLI and the web app."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", names: tuple[str, ...] = ("acme", "web")) -> None:
    """Install one stream handler on each of the project's top-level loggers.

    Safe to call more than once; later calls change the level and point the
    existing handler at the current ``sys.stderr``.
    """
    for name in names:
        logger = logging.getLogger(name)
        logger.setLevel(level.upper())
        ours = [h for h in logger.handlers if getattr(h, "_acme_handler", False)]
        if ours:
            for h in ours:
                h.stream = sys.stderr
            continue
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._acme_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
