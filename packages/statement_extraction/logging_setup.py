"""Package logger wiring.

Parsers, stores and the merchant refresher log under
``statement_extraction.<module>`` and stay silent until the CLI (or an
embedding application) calls :func:`configure_logging`. The CLI does that in
its root callback; ``--verbose`` switches to DEBUG, otherwise the level comes
from ``STATEMENT_EXTRACTION_LOG_LEVEL`` or defaults to INFO.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "statement_extraction"
_LEVEL_ENV = "STATEMENT_EXTRACTION_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
        return logging.INFO
    env_val = os.getenv(_LEVEL_ENV)
    if env_val and env_val.strip():
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    verbose: bool = False,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Send package records to ``stream`` (stderr by default). Later calls are no-ops.

    ``verbose`` forces DEBUG; otherwise ``level`` (a number or a level name)
    applies, then ``STATEMENT_EXTRACTION_LOG_LEVEL``, then INFO.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = logging.DEBUG if verbose else _parse_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a silent package default."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
