"""Data models for ``statement_extraction``.

Two kinds of models live here:

- Frozen ``dataclass`` records produced by the parsing path (``RawRecord``,
  ``AccountInfo``, ``Transaction``). They are plain values: no validation
  beyond the invariants enforced in ``__post_init__``.
- Pydantic DTOs for data that crosses a process boundary (the merchant
  dictionary source, the persisted learned-description blob, the
  failed-parsing queue). These validate on load so malformed input is rejected
  in one place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Literal, NamedTuple, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

TransactionSource: TypeAlias = Literal["statement", "sms", "notification", "manual"]

DEFAULT_CATEGORY = "Other"
UNKNOWN_STORE = "Unknown Store"


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Parsing-path records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One line's worth of extracted data, before merchant/category resolution.

    ``amount`` is always the non-negative magnitude; direction lives in
    ``is_income``. Strategies normalize the sign when they build the record.
    """

    date: date
    amount: Decimal
    description: str
    is_income: bool = False
    balance: Decimal | None = None
    original_line: str | None = None
    notes: str = "Imported from bank statement"

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("RawRecord.amount must be a positive magnitude")


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """Header-level facts discovered once per parsed text.

    Every field is optional and discovered independently of the others.
    """

    account_number: str | None = None
    account_name: str | None = None
    account_type: str | None = None
    bank_name: str | None = None
    balance: Decimal | None = None
    available_balance: Decimal | None = None


@dataclass(frozen=True, slots=True)
class Transaction:
    """A fully resolved transaction.

    Field order mirrors the JSON output of the CLI. ``amount`` is a positive
    magnitude and ``is_income`` carries the direction.
    """

    id: str
    date: date
    amount: Decimal
    is_income: bool
    description: str
    store: str
    category: str
    notes: str = ""
    balance: Decimal | None = None
    account_number: str | None = None
    account_name: str | None = None
    account_type: str | None = None
    bank_name: str | None = None
    source: TransactionSource = "statement"
    original_line: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("Transaction.amount must be a positive magnitude")

    def to_json_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping (ISO date, 2dp amount strings)."""

        out = asdict(self)
        out["date"] = self.date.isoformat()
        out["amount"] = f"{self.amount:.2f}"
        out["balance"] = f"{self.balance:.2f}" if self.balance is not None else None
        return out


class ParseResult(NamedTuple):
    """Outcome of one statement parse.

    An empty ``transactions`` list is the documented "nothing extractable"
    result, not an error. ``strategy`` names the strategy that produced the
    rows (``None`` when every strategy came back empty).
    """

    account_info: AccountInfo
    transactions: list[Transaction]
    strategy: str | None = None


# ---------------------------------------------------------------------------
# Merchant dictionary source DTOs
# ---------------------------------------------------------------------------


class CategoryPattern(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    keywords: list[str] = Field(default_factory=list)
    description: str | None = None

    @field_validator("keywords")
    @classmethod
    def _normalize_keywords(cls, v: list[str]) -> list[str]:
        # Lowercased, blank-free, first occurrence wins.
        return list(dict.fromkeys(k.strip().lower() for k in v if k and k.strip()))


class MerchantSourcePayload(BaseModel):
    """Shape served by the dictionary source.

    The service may answer with ``merchants``, ``patterns`` or both; a missing
    half keeps the previously loaded (or default) table for that half.
    """

    model_config = ConfigDict(extra="ignore")

    merchants: dict[str, dict[str, str]] | None = None
    patterns: dict[str, CategoryPattern] | None = None


# ---------------------------------------------------------------------------
# Learned-description store DTOs
# ---------------------------------------------------------------------------


class LearnedDescription(BaseModel):
    """Persisted per-merchant memory, keyed by normalized store name."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    description: str
    category: str
    amount: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)
    last_used: datetime = Field(default_factory=utcnow, alias="lastUsed")
    original_store: str = Field(alias="originalStore")
    is_manual: bool = Field(default=False, alias="isManual")


# The on-disk blob: ``[[normalized_key, record], ...]``.
LearnedBlob = TypeAdapter(list[tuple[str, LearnedDescription]])


class LearnedSummary(NamedTuple):
    store: str
    description: str
    category: str
    count: int
    last_used: datetime
    is_manual: bool


@dataclass(frozen=True, slots=True)
class LearnedStats:
    total_stores: int
    total_transactions: int
    manual_stores: int
    learned_stores: int
    categories: dict[str, int] = field(default_factory=dict)

    @property
    def average_transactions_per_store(self) -> float:
        if self.total_stores == 0:
            return 0.0
        return round(self.total_transactions / self.total_stores, 1)


# ---------------------------------------------------------------------------
# Failed-parsing queue DTOs
# ---------------------------------------------------------------------------


class FailedAttempt(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    original_text: str
    source: str
    timestamp: datetime
    processed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None


FailedBlob = TypeAdapter(list[FailedAttempt])


# ---------------------------------------------------------------------------
# Message parsing DTO
# ---------------------------------------------------------------------------


class MessageParse(BaseModel):
    """Structured guess extracted from one SMS or notification.

    Produced by both the regex parser and the AI parser. A non-expense parse
    carries no amount or store.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    is_expense: bool
    amount: Decimal | None = None
    store: str | None = None
    description: str | None = None
    category: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _expense_needs_amount_and_store(self) -> MessageParse:
        if self.is_expense:
            if self.amount is None or self.amount <= 0:
                raise ValueError("an expense needs a positive amount")
            if not self.store:
                raise ValueError("an expense needs a store")
        return self


__all__ = [
    "DEFAULT_CATEGORY",
    "UNKNOWN_STORE",
    "TransactionSource",
    "RawRecord",
    "AccountInfo",
    "Transaction",
    "ParseResult",
    "CategoryPattern",
    "MerchantSourcePayload",
    "LearnedDescription",
    "LearnedBlob",
    "LearnedSummary",
    "LearnedStats",
    "FailedAttempt",
    "FailedBlob",
    "MessageParse",
    "utcnow",
]
