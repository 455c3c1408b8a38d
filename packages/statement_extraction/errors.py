"""Exception types raised by ``statement_extraction``.

Per-line and per-strategy parse failures are not exceptions: they are skipped
or reported as tagged strategy results. The types here cover the cases a
caller has to handle explicitly.
"""

from __future__ import annotations


class StatementExtractionError(Exception):
    """Base class for errors raised by this package."""


class DuplicateStoreError(StatementExtractionError):
    """A manual learned-description entry already exists for the store."""

    def __init__(self, store: str, *, key: str) -> None:
        super().__init__(f"Store already exists: {store!r} (key={key!r})")
        self.store = store
        self.key = key


class MerchantSourceError(StatementExtractionError):
    """The merchant dictionary source could not be fetched or validated."""


class AIParseError(StatementExtractionError):
    """The AI collaborator failed, timed out, or returned an invalid shape."""


__all__ = [
    "StatementExtractionError",
    "DuplicateStoreError",
    "MerchantSourceError",
    "AIParseError",
]
