"""Merchant dictionary: known merchants and category keyword patterns.

The dictionary has two halves:

- ``merchants``: ``group -> {merchant name -> category}``. The group is only a
  display bucket; lookups use the flattened ``(merchant, category)`` pairs in
  dictionary order.
- ``patterns``: ``category -> {keywords, description}``. Lookups use the
  ordered ``(category, keywords)`` pairs.

:class:`MerchantTables` is the immutable snapshot built once per load from
validated source data. :class:`MerchantDictionary` owns the current snapshot,
reloads it from a :class:`MerchantSource` when it is older than the reload
interval, and falls back to the built-in defaults when the source is
unreachable. Reloads after the first run on a single background worker so
readers never wait on the network; until a refresh lands they keep using the
previous snapshot.
"""

from __future__ import annotations

import http.client
import json
import threading
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .errors import MerchantSourceError
from .logging_setup import get_logger
from .models import CategoryPattern, MerchantSourcePayload

logger = get_logger("statement_extraction.merchants")

DEFAULT_FETCH_TIMEOUT_SECONDS: float = 10.0

DEFAULT_MERCHANTS: dict[str, dict[str, str]] = {
    "Food & Groceries": {
        "Woolworths": "Food",
        "Pick n Pay": "Shopping",
        "Checkers": "Shopping",
        "Spar": "Shopping",
        "Food Lovers": "Food",
        "VINSTRA CAFE/SUPERMARKE": "Food",
        "KINGS MEAT DELI": "Food",
        "BK CASTLE GATE": "Food",
        "Burger King": "Food",
        "UBER EATS": "Food",
        "PnP": "Shopping",
        "TOPS": "Shopping",
    },
    "Transport": {
        "Shell": "Transport",
        "Engen": "Transport",
        "Sasol": "Transport",
        "BP": "Transport",
        "Total": "Transport",
        "Uber": "Transport",
        "Bolt": "Transport",
    },
    "Healthcare": {
        "Dischem": "Healthcare",
        "Clicks": "Healthcare",
        "DISC PREM": "Healthcare",
        "DISCLIFE": "Healthcare",
        "DISC INVT": "Healthcare",
    },
    "Entertainment": {
        "Netflix": "Entertainment",
        "Spotify": "Entertainment",
        "Showmax": "Entertainment",
        "MOREGOLF": "Entertainment",
        "BETWAY": "Entertainment",
        "STEAMGAMES": "Entertainment",
        "Google Golf": "Entertainment",
        "Yoco": "Entertainment",
        "Play With": "Entertainment",
        "Extreme Wargami": "Entertainment",
    },
    "Rent": {
        "PAYPROP": "Rent",
    },
    "Bills & Utilities": {
        "Vodacom": "Bills",
        "MTN": "Bills",
        "Telkom": "Bills",
        "VOXTELECOM": "Bills",
        "Microsoft": "Bills",
        "Google One": "Bills",
        "Google DopaMax": "Bills",
        "VIRGIN ACT": "Bills",
        "BYC DEBIT": "Bills",
        "Eskom": "Bills",
        "City Power": "Bills",
    },
    "Salary": {
        "NETCASH": "Salary",
        "STANSAL": "Salary",
    },
    "Transfers": {
        "FNB APP PAYMENT": "Transfers",
        "ABSA BANK": "Transfers",
        "MOTHER": "Transfers",
        "BLOB": "Transfers",
        "FNB PLOAN": "Transfers",
        "INT-BANKING PMT": "Transfers",
    },
    "Shopping": {
        "Amazon": "Shopping",
        "Takealot": "Shopping",
        "Mr Price": "Shopping",
        "Foschini": "Shopping",
        "SORBET MAN": "Shopping",
        "KAMERS / MAKERS": "Shopping",
        "Total Newlands": "Shopping",
    },
}

DEFAULT_PATTERNS: dict[str, dict[str, object]] = {
    "Food": {
        "keywords": [
            "grocery", "food", "supermarket", "cafe", "restaurant", "dining",
            "burger", "meat", "eats", "vinstra", "kings meat", "bk castle",
        ],
        "description": "Food and dining related transactions",
    },
    "Transport": {
        "keywords": ["petrol", "fuel", "gas", "transport", "engen", "shell", "bp", "total"],
        "description": "Transportation and fuel related transactions",
    },
    "Bills": {
        "keywords": [
            "electricity", "water", "bill", "monthly", "fee", "int pymt",
            "byc", "vodacom", "microsoft", "google", "virgin", "voxtelcom",
        ],
        "description": "Bills and utility payments",
    },
    "Rent": {
        "keywords": ["rent", "payprop"],
        "description": "Rent and housing payments",
    },
    "Shopping": {
        "keywords": [
            "shopping", "store", "retail", "amazon", "takealot", "sorbet",
            "kamers", "makers", "pnp", "pick n pay", "checkers", "spar",
            "tops", "purc", "woolworths", "food lovers",
        ],
        "description": "Shopping and retail purchases",
    },
    "Entertainment": {
        "keywords": [
            "entertainment", "movie", "streaming", "golf", "betway", "steam",
            "yoco", "play", "wargami",
        ],
        "description": "Entertainment and leisure activities",
    },
    "Salary": {
        "keywords": ["salary", "income", "netcash", "stansal", "pay"],
        "description": "Salary and income payments",
    },
    "Transfers": {
        "keywords": ["transfer", "eft", "payment", "fnb", "absa", "mother", "blob", "ploan"],
        "description": "Bank transfers and payments",
    },
    "Healthcare": {
        "keywords": ["dischem", "clicks", "pharmacy", "disc", "health", "medical"],
        "description": "Healthcare and medical expenses",
    },
}


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MerchantTables:
    """Immutable lookup tables for one dictionary load.

    ``merchants`` holds ``(name, category)`` pairs in dictionary order with
    the first occurrence of a name winning. ``patterns`` holds
    ``(category, keywords)`` pairs with lowercased keywords.
    """

    merchants: tuple[tuple[str, str], ...]
    patterns: tuple[tuple[str, tuple[str, ...]], ...]
    grouped: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    pattern_descriptions: Mapping[str, str] = field(default_factory=dict)
    origin: str = "default"

    @classmethod
    def build(
        cls,
        grouped: Mapping[str, Mapping[str, str]],
        patterns: Mapping[str, CategoryPattern],
        *,
        origin: str = "default",
    ) -> MerchantTables:
        pairs: list[tuple[str, str]] = []
        seen: set[str] = set()
        for group, members in grouped.items():
            for name, category in members.items():
                key = name.strip().lower()
                if not key:
                    continue
                if key in seen:
                    logger.debug("Duplicate merchant %r in group %r ignored", name, group)
                    continue
                seen.add(key)
                pairs.append((name.strip(), category.strip()))

        pattern_pairs = tuple(
            (category, tuple(p.keywords)) for category, p in patterns.items() if p.keywords
        )
        descriptions = {c: p.description for c, p in patterns.items() if p.description}
        return cls(
            merchants=tuple(pairs),
            patterns=pattern_pairs,
            grouped={g: dict(m) for g, m in grouped.items()},
            pattern_descriptions=descriptions,
            origin=origin,
        )

    @classmethod
    def defaults(cls) -> MerchantTables:
        patterns = {c: CategoryPattern.model_validate(p) for c, p in DEFAULT_PATTERNS.items()}
        return cls.build(DEFAULT_MERCHANTS, patterns, origin="default")

    def merchant_names(self) -> list[str]:
        return [name for name, _ in self.merchants]

    def categories(self) -> list[str]:
        """Every category named by either half, in first-seen order."""

        seen = dict.fromkeys(c for _, c in self.merchants)
        seen.update(dict.fromkeys(c for c, _ in self.patterns))
        return list(seen)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class MerchantSource(Protocol):
    def fetch(self) -> MerchantSourcePayload: ...

    def describe(self) -> str: ...


class HttpMerchantSource:
    """Fetch both halves from a storage server.

    ``GET {base_url}/api/merchants`` answers ``{"merchants": {...}}`` and
    ``GET {base_url}/api/categorization-patterns`` answers
    ``{"patterns": {...}}``. A failing endpoint leaves that half unset in the
    payload.
    """

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def describe(self) -> str:
        return self.base_url

    def _get_json(self, path: str, key: str) -> object | None:
        url = f"{self.base_url}{path}"
        req = urllib.request.Request(url, method="GET")
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            logger.warning("Merchant source %s unavailable: %s", url, e)
            return None
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MerchantSourceError(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(data, dict):
            raise MerchantSourceError(f"Expected a JSON object from {url}")
        return data.get(key)

    def fetch(self) -> MerchantSourcePayload:
        merchants = self._get_json("/api/merchants", "merchants")
        patterns = self._get_json("/api/categorization-patterns", "patterns")
        if merchants is None and patterns is None:
            raise MerchantSourceError(f"Merchant source {self.base_url} is unreachable")
        try:
            return MerchantSourcePayload.model_validate(
                {"merchants": merchants, "patterns": patterns}
            )
        except ValidationError as e:
            raise MerchantSourceError(f"Invalid merchant payload from {self.base_url}: {e}") from e


class FileMerchantSource:
    """Read ``{"merchants": ..., "patterns": ...}`` from a local JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def describe(self) -> str:
        return str(self.path)

    def fetch(self) -> MerchantSourcePayload:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise MerchantSourceError(f"Cannot read merchant file {self.path}: {e}") from e
        try:
            return MerchantSourcePayload.model_validate_json(raw)
        except ValidationError as e:
            raise MerchantSourceError(f"Invalid merchant file {self.path}: {e}") from e


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class MerchantDictionary:
    """Owns the current :class:`MerchantTables` snapshot.

    Usage::

        with MerchantDictionary(FileMerchantSource(path)) as merchants:
            merchants.load()
            tables = merchants.tables()

    Without a source the dictionary serves the built-in defaults and never
    reloads.
    """

    def __init__(
        self,
        source: MerchantSource | None = None,
        *,
        reload_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.reload_interval = reload_interval
        self._clock = clock
        self._tables = MerchantTables.defaults()
        self._checked_at: float | None = None
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: Future[None] | None = None

    def __enter__(self) -> MerchantDictionary:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- reads --------------------------------------------------------------

    def tables(self) -> MerchantTables:
        """Return the current snapshot without blocking.

        A stale snapshot schedules a background refresh; this call still
        returns the snapshot it had.
        """

        if self.is_stale():
            self._schedule_refresh()
        return self._tables

    def is_stale(self) -> bool:
        if self.source is None:
            return False
        if self._checked_at is None:
            return True
        return (self._clock() - self._checked_at) > self.reload_interval

    # -- loading ------------------------------------------------------------

    def load(self) -> MerchantTables:
        """Synchronously refresh from the source, falling back to defaults."""

        self.refresh()
        return self._tables

    def refresh(self) -> bool:
        """Fetch once; return ``True`` when a new snapshot was installed.

        A failed fetch keeps the current snapshot and is retried after the
        reload interval, not on every read.
        """

        if self.source is None:
            return False
        self._checked_at = self._clock()
        try:
            payload = self.source.fetch()
        except MerchantSourceError as e:
            logger.warning("Keeping %s merchant tables: %s", self._tables.origin, e)
            return False
        except Exception:
            logger.warning(
                "Keeping %s merchant tables after an unexpected source error",
                self._tables.origin,
                exc_info=True,
            )
            return False

        current = self._tables
        grouped = payload.merchants if payload.merchants is not None else current.grouped
        if payload.patterns is not None:
            patterns = payload.patterns
        else:
            patterns = {
                c: CategoryPattern(
                    keywords=list(kw), description=current.pattern_descriptions.get(c)
                )
                for c, kw in current.patterns
            }
        tables = MerchantTables.build(grouped, patterns, origin=self.source.describe())
        self._tables = tables
        logger.info(
            "Loaded %d merchants and %d category patterns from %s",
            len(tables.merchants),
            len(tables.patterns),
            tables.origin,
        )
        return True

    def _schedule_refresh(self) -> None:
        with self._lock:
            if self._pending is not None and not self._pending.done():
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="merchant-refresh"
                )
            self._pending = self._executor.submit(self._refresh_in_background)

    def _refresh_in_background(self) -> None:
        try:
            self.refresh()
        except Exception:
            logger.exception("Background merchant refresh failed")

    def wait_for_refresh(self, timeout: float | None = None) -> None:
        """Block until an in-flight background refresh finishes."""

        pending = self._pending
        if pending is not None:
            pending.result(timeout=timeout)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)


__all__ = [
    "DEFAULT_MERCHANTS",
    "DEFAULT_PATTERNS",
    "FileMerchantSource",
    "HttpMerchantSource",
    "MerchantDictionary",
    "MerchantSource",
    "MerchantTables",
]
