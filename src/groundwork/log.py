"""Logging setup for the groundwork CLI and embedding applications."""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | int = "WARNING") -> None:
    """Configure root logging once and set the ``groundwork`` logger level.

    A handler is installed only when the root logger has none, so host
    applications that configure logging themselves keep their setup.
    Unknown level names fall back to WARNING.
    """
    if isinstance(level, str):
        resolved = getattr(logging, level.strip().upper(), logging.WARNING)
        if not isinstance(resolved, int):
            resolved = logging.WARNING
    else:
        resolved = level

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=resolved, format=_FORMAT)
    logging.getLogger("groundwork").setLevel(resolved)
