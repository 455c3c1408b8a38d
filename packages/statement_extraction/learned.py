"""Learned-description store: per-merchant description and category memory.

Entries are keyed by the normalized store name (trimmed, lower-cased) and
kept in insertion order, which is also the scan order for approximate
lookups. Lookups tolerate small spelling differences via
:func:`similarity`; the first entry at or above
:data:`SIMILARITY_THRESHOLD` wins.

Persistence: the whole store is one JSON list of ``[key, record]`` pairs,
read once at :meth:`LearnedDescriptionStore.load` and rewritten after every
mutation. Mutations and writes hold one lock per store, so at most one write
is in flight. A store constructed without a path lives in memory only.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import NamedTuple

from pydantic import ValidationError
from rapidfuzz.distance import Levenshtein

from .categorizer import UNKNOWN_PURCHASE, default_category, default_description
from .errors import DuplicateStoreError
from .logging_setup import get_logger
from .models import (
    DEFAULT_CATEGORY,
    LearnedBlob,
    LearnedDescription,
    LearnedStats,
    LearnedSummary,
    utcnow,
)
from .storage import atomic_write_text, read_text_or_none

logger = get_logger("statement_extraction.learned")

SIMILARITY_THRESHOLD = 0.7
CONTAINMENT_SIMILARITY = 0.8

BASE_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Shopping",
    "Bills",
    "Entertainment",
    "Healthcare",
    "Other",
)


def normalize_store(name: str) -> str:
    return name.strip().lower()


def similarity(a: str, b: str) -> float:
    """Score two normalized names in ``[0, 1]``.

    Equal names score 1.0; a name contained in the other scores
    :data:`CONTAINMENT_SIMILARITY`; otherwise the normalized Levenshtein
    similarity ``1 - distance / max(len(a), len(b))``.
    """

    if a == b:
        return 1.0
    if a and b and (a in b or b in a):
        return CONTAINMENT_SIMILARITY
    return Levenshtein.normalized_similarity(a, b)


class StoreMatch(NamedTuple):
    key: str
    entry: LearnedDescription
    similarity: float


class LearnedDescriptionStore:
    """Explicitly constructed store; call :meth:`load` before first use.

    ``clock`` supplies ``last_used`` timestamps and exists for tests.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        threshold: float = SIMILARITY_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.threshold = threshold
        self._clock = clock
        self._entries: dict[str, LearnedDescription] = {}
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Path, **kwargs: object) -> LearnedDescriptionStore:
        store = cls(path, **kwargs)  # type: ignore[arg-type]
        store.load()
        return store

    # -- persistence --------------------------------------------------------

    def load(self) -> None:
        """Replace in-memory entries with the persisted blob.

        A missing file means an empty store. An unreadable or malformed blob
        is logged and also yields an empty store.
        """

        with self._lock:
            self._entries = {}
            if self.path is None:
                return
            try:
                raw = read_text_or_none(self.path)
            except (OSError, UnicodeDecodeError):
                logger.error("Cannot read learned descriptions from %s", self.path, exc_info=True)
                return
            if raw is None or not raw.strip():
                return
            try:
                pairs = LearnedBlob.validate_json(raw)
            except ValidationError as e:
                logger.error(
                    "Malformed learned descriptions in %s; starting empty (%d errors)",
                    self.path,
                    e.error_count(),
                )
                return
            for key, entry in pairs:
                norm = normalize_store(key)
                if norm:
                    self._entries[norm] = entry
            logger.debug("Loaded %d learned descriptions from %s", len(self._entries), self.path)

    def _save(self) -> None:
        if self.path is None:
            return
        blob = LearnedBlob.dump_json(list(self._entries.items()), by_alias=True, indent=2)
        atomic_write_text(self.path, blob.decode("utf-8"))

    # -- lookups ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, store: object) -> bool:
        return isinstance(store, str) and normalize_store(store) in self._entries

    def get(self, store: str) -> LearnedDescription | None:
        return self._entries.get(normalize_store(store))

    def find_similar_store(self, name: str) -> StoreMatch | None:
        query = normalize_store(name)
        if not query:
            return None
        exact = self._entries.get(query)
        if exact is not None:
            return StoreMatch(query, exact, 1.0)
        for key, entry in self._entries.items():
            score = similarity(query, key)
            if score >= self.threshold:
                return StoreMatch(key, entry, score)
        return None

    # -- mutations ----------------------------------------------------------

    def get_description(self, store: str, amount: Decimal | None = None) -> str:
        """Return the learned description for ``store``, learning one if new.

        A match has its usage bumped. An unseen store gets a generated
        description and category, which are learned before returning.
        """

        if not store or not store.strip():
            return UNKNOWN_PURCHASE
        with self._lock:
            match = self.find_similar_store(store)
            if match is not None:
                self._touch(match.key, match.entry, amount)
                self._save()
                return match.entry.description
            description = default_description(store, amount)
            self.learn_description(store, description, default_category(store), amount)
            return description

    def category_for_store(self, store: str) -> str:
        """Return the learned category for ``store``, learning a default if new."""

        if not store or not store.strip():
            return DEFAULT_CATEGORY
        with self._lock:
            match = self.find_similar_store(store)
            if match is not None:
                return match.entry.category
            category = default_category(store)
            self.learn_description(store, default_description(store), category)
            return category

    def learn_description(
        self,
        store: str,
        description: str,
        category: str,
        amount: Decimal | None = None,
    ) -> LearnedDescription:
        """Upsert by normalized key.

        An existing entry gets ``count + 1`` and a fresh ``last_used`` and
        amount; its description and category are replaced unless the entry
        is manual. A new entry starts at ``count=1`` and ``is_manual=False``.
        """

        key = normalize_store(store)
        if not key:
            raise ValueError("store name must not be empty")
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                update: dict[str, object] = {
                    "count": existing.count + 1,
                    "last_used": self._clock(),
                }
                if amount is not None:
                    update["amount"] = amount
                if not existing.is_manual:
                    update["description"] = description
                    update["category"] = category
                entry = existing.model_copy(update=update)
            else:
                entry = LearnedDescription(
                    description=description,
                    category=category,
                    amount=amount if amount is not None else Decimal("0"),
                    count=1,
                    last_used=self._clock(),
                    original_store=store.strip(),
                    is_manual=False,
                )
            self._entries[key] = entry
            self._save()
            return entry

    def update_description(self, store: str, description: str, category: str) -> bool:
        """Explicit user edit; applies to manual entries too. ``False`` if absent."""

        key = normalize_store(store)
        with self._lock:
            existing = self._entries.get(key)
            if existing is None:
                return False
            self._entries[key] = existing.model_copy(
                update={
                    "description": description,
                    "category": category,
                    "count": existing.count + 1,
                    "last_used": self._clock(),
                }
            )
            self._save()
            return True

    def delete_description(self, store: str) -> bool:
        key = normalize_store(store)
        with self._lock:
            if self._entries.pop(key, None) is None:
                return False
            self._save()
            return True

    def create_manual_store(
        self, store: str, description: str, category: str
    ) -> LearnedDescription:
        key = normalize_store(store)
        if not key:
            raise ValueError("store name must not be empty")
        with self._lock:
            if key in self._entries:
                raise DuplicateStoreError(store, key=key)
            entry = LearnedDescription(
                description=description,
                category=category,
                count=0,
                last_used=self._clock(),
                original_store=store.strip(),
                is_manual=True,
            )
            self._entries[key] = entry
            self._save()
            logger.info("Created manual store %r (%s)", store.strip(), category)
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._save()

    def _touch(self, key: str, entry: LearnedDescription, amount: Decimal | None) -> None:
        update: dict[str, object] = {"count": entry.count + 1, "last_used": self._clock()}
        if amount is not None:
            update["amount"] = amount
        self._entries[key] = entry.model_copy(update=update)

    # -- reporting ----------------------------------------------------------

    def all_descriptions(self) -> list[LearnedSummary]:
        """Every entry, most used first."""

        rows = [
            LearnedSummary(
                store=e.original_store,
                description=e.description,
                category=e.category,
                count=e.count,
                last_used=e.last_used,
                is_manual=e.is_manual,
            )
            for e in self._entries.values()
        ]
        rows.sort(key=lambda r: r.count, reverse=True)
        return rows

    def available_categories(self) -> list[str]:
        """Base categories plus any custom ones in use, sorted."""

        custom = {e.category for e in self._entries.values()} - set(BASE_CATEGORIES)
        return sorted(set(BASE_CATEGORIES) | custom)

    def stats(self) -> LearnedStats:
        entries = list(self._entries.values())
        manual = sum(1 for e in entries if e.is_manual)
        return LearnedStats(
            total_stores=len(entries),
            total_transactions=sum(e.count for e in entries),
            manual_stores=manual,
            learned_stores=len(entries) - manual,
            categories=dict(Counter(e.category for e in entries)),
        )


__all__ = [
    "BASE_CATEGORIES",
    "SIMILARITY_THRESHOLD",
    "LearnedDescriptionStore",
    "StoreMatch",
    "normalize_store",
    "similarity",
]
