"""Queue of messages and statements that could not be parsed.

Raw text that produced no transaction is kept here so a person can enter it
by hand later. Attempts are stored newest first in one JSON file, rewritten
wholesale under a per-queue lock on every change.
"""

from __future__ import annotations

import threading
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import FailedAttempt, FailedBlob, utcnow
from .storage import atomic_write_text, read_text_or_none

logger = get_logger("statement_extraction.failed_parsing")


class FailedParsingQueue:
    def __init__(
        self,
        path: Path | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self._clock = clock
        self._items: list[FailedAttempt] = []
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path) -> FailedParsingQueue:
        queue = cls(path)
        queue.load()
        return queue

    def load(self) -> None:
        with self._lock:
            self._items = []
            if self.path is None:
                return
            try:
                raw = read_text_or_none(self.path)
            except (OSError, UnicodeDecodeError):
                logger.error("Cannot read failed-parsing queue %s", self.path, exc_info=True)
                return
            if raw is None or not raw.strip():
                return
            try:
                self._items = FailedBlob.validate_json(raw)
            except ValidationError as e:
                logger.error(
                    "Malformed failed-parsing queue %s; starting empty (%d errors)",
                    self.path,
                    e.error_count(),
                )

    def _save(self) -> None:
        if self.path is None:
            return
        atomic_write_text(self.path, FailedBlob.dump_json(self._items, indent=2).decode("utf-8"))

    def __len__(self) -> int:
        return len(self._items)

    def add(
        self, original_text: str, source: str, *, timestamp: datetime | None = None
    ) -> FailedAttempt:
        now = self._clock()
        attempt = FailedAttempt(
            id=uuid.uuid4().hex,
            original_text=original_text,
            source=source,
            timestamp=timestamp or now,
            created_at=now,
        )
        with self._lock:
            self._items.insert(0, attempt)
            self._save()
        logger.info("Queued failed %s parse %s for manual entry", source, attempt.id)
        return attempt

    def all(self) -> list[FailedAttempt]:
        return list(self._items)

    def pending(self, source: str | None = None) -> list[FailedAttempt]:
        return [
            a for a in self._items if not a.processed and (source is None or a.source == source)
        ]

    def mark_processed(self, attempt_id: str) -> bool:
        with self._lock:
            for i, a in enumerate(self._items):
                if a.id == attempt_id:
                    self._items[i] = a.model_copy(
                        update={"processed": True, "processed_at": self._clock()}
                    )
                    self._save()
                    return True
        return False

    def delete(self, attempt_id: str) -> bool:
        with self._lock:
            kept = [a for a in self._items if a.id != attempt_id]
            if len(kept) == len(self._items):
                return False
            self._items = kept
            self._save()
            return True

    def clear_processed(self) -> int:
        """Drop processed attempts; return how many were removed."""

        with self._lock:
            kept = [a for a in self._items if not a.processed]
            removed = len(self._items) - len(kept)
            if removed:
                self._items = kept
                self._save()
            return removed

    def stats(self) -> dict[str, Any]:
        return {
            "total": len(self._items),
            "pending": sum(1 for a in self._items if not a.processed),
            "processed": sum(1 for a in self._items if a.processed),
            "by_source": dict(Counter(a.source for a in self._items)),
        }


__all__ = ["FailedParsingQueue"]
