"""Expense ledger backed by the ``db`` library.

The ledger is where transactions become durable. It is also one end of the
learning loop: every manually entered expense added here is fed into the
learned-description store (captured messages were already learned on
ingestion), so the next statement or message from the same merchant reuses
its description and category.

Statement imports are idempotent. Each imported row carries a SHA-256
fingerprint over its canonical fields; rows whose fingerprint is already
stored are skipped.
"""

from __future__ import annotations

import hashlib
import json
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import NamedTuple

from db.client import init_schema, session_scope
from db.models.expenses import Expense
from sqlalchemy import delete, select

from .learned import LearnedDescriptionStore
from .logging_setup import get_logger
from .models import Transaction
from .normalizers import clean_description

logger = get_logger("statement_extraction.ledger")

# Captured messages are learned by MessageIngestor before they reach the ledger.
LEARNING_SOURCES: frozenset[str] = frozenset({"manual"})


def compute_fingerprint(tx: Transaction) -> str:
    """Stable SHA-256 over date, amount, direction, description, balance and account.

    Description is whitespace-collapsed and lower-cased; amounts are 2dp
    strings.
    """

    payload = {
        "date": tx.date.isoformat(),
        "amount": f"{tx.amount:.2f}",
        "is_income": tx.is_income,
        "description": clean_description(tx.description).lower(),
        "balance": f"{tx.balance:.2f}" if tx.balance is not None else None,
        "account": (tx.account_number or "").strip() or None,
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


class ImportSummary(NamedTuple):
    inserted: int
    skipped: int


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    count: int
    total: Decimal


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    count: int
    total_spent: Decimal
    total_income: Decimal
    by_category: dict[str, CategoryTotal] = field(default_factory=dict)
    by_month: dict[str, CategoryTotal] = field(default_factory=dict)


def _to_row(tx: Transaction, *, fingerprint: str | None = None) -> Expense:
    return Expense(
        id=tx.id,
        date=tx.date,
        amount=tx.amount,
        is_income=tx.is_income,
        description=tx.description,
        store=tx.store,
        category=tx.category,
        notes=tx.notes,
        balance=tx.balance,
        account_number=tx.account_number,
        account_name=tx.account_name,
        account_type=tx.account_type,
        bank_name=tx.bank_name,
        source=tx.source,
        original_line=tx.original_line,
        fingerprint_sha256=fingerprint,
    )


def _from_row(row: Expense) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        amount=Decimal(row.amount),
        is_income=row.is_income,
        description=row.description,
        store=row.store,
        category=row.category,
        notes=row.notes,
        balance=Decimal(row.balance) if row.balance is not None else None,
        account_number=row.account_number,
        account_name=row.account_name,
        account_type=row.account_type,
        bank_name=row.bank_name,
        source=row.source,  # type: ignore[arg-type]
        original_line=row.original_line,
    )


class ExpenseLedger:
    """Transactions persisted through SQLAlchemy.

    The schema is created on construction. ``learned`` is optional; without
    it nothing is learned from added expenses.
    """

    def __init__(
        self, database_url: str, *, learned: LearnedDescriptionStore | None = None
    ) -> None:
        self.database_url = database_url
        self.learned = learned
        init_schema(database_url=database_url)

    def add_expense(self, tx: Transaction) -> Transaction:
        with session_scope(database_url=self.database_url) as s:
            s.add(_to_row(tx))
        logger.info("Added %s transaction %s (%s, R%s)", tx.source, tx.id, tx.store, tx.amount)
        if self.learned is not None and tx.source in LEARNING_SOURCES and not tx.is_income:
            self.learned.learn_description(tx.store, tx.description, tx.category, tx.amount)
        return tx

    def import_transactions(self, transactions: Iterable[Transaction]) -> ImportSummary:
        """Insert statement rows, skipping any already imported."""

        pending: dict[str, Transaction] = {}
        skipped = 0
        for tx in transactions:
            fp = compute_fingerprint(tx)
            if fp in pending:
                skipped += 1
                continue
            pending[fp] = tx
        if not pending:
            return ImportSummary(0, skipped)

        with session_scope(database_url=self.database_url) as s:
            existing = set(
                s.scalars(
                    select(Expense.fingerprint_sha256).where(
                        Expense.fingerprint_sha256.in_(list(pending))
                    )
                )
            )
            for fp, tx in pending.items():
                if fp in existing:
                    skipped += 1
                    continue
                s.add(_to_row(tx, fingerprint=fp))
        inserted = len(pending) - len(existing)
        logger.info("Imported %d transactions (%d duplicates skipped)", inserted, skipped)
        return ImportSummary(inserted, skipped)

    def list_expenses(
        self, *, category: str | None = None, limit: int | None = None
    ) -> list[Transaction]:
        """Newest first."""

        stmt = select(Expense).order_by(Expense.date.desc(), Expense.created_at.desc())
        if category is not None:
            stmt = stmt.where(Expense.category == category)
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(database_url=self.database_url) as s:
            return [_from_row(r) for r in s.scalars(stmt)]

    def delete_expense(self, expense_id: str) -> bool:
        with session_scope(database_url=self.database_url) as s:
            result = s.execute(delete(Expense).where(Expense.id == expense_id))
            return bool(result.rowcount)

    def summary(self) -> LedgerSummary:
        """Totals over the whole ledger; category and month buckets count expenses only."""

        spent = Decimal("0")
        income = Decimal("0")
        count = 0
        by_category: dict[str, list[Decimal]] = defaultdict(list)
        by_month: dict[str, list[Decimal]] = defaultdict(list)
        for tx in self.list_expenses():
            count += 1
            if tx.is_income:
                income += tx.amount
                continue
            spent += tx.amount
            by_category[tx.category].append(tx.amount)
            by_month[tx.date.strftime("%Y-%m")].append(tx.amount)

        def _totals(buckets: dict[str, list[Decimal]]) -> dict[str, CategoryTotal]:
            return {k: CategoryTotal(len(v), sum(v, Decimal("0"))) for k, v in buckets.items()}

        return LedgerSummary(
            count=count,
            total_spent=spent,
            total_income=income,
            by_category=_totals(by_category),
            by_month=dict(sorted(_totals(by_month).items())),
        )


__all__ = [
    "CategoryTotal",
    "ExpenseLedger",
    "ImportSummary",
    "LedgerSummary",
    "compute_fingerprint",
]
