"""Statement parsing service.

:class:`StatementParser` ties the pipeline together for one input text:

1. split into stripped, non-blank lines;
2. scan account info once;
3. run the strategy chain;
4. resolve store and category per record and enhance it into a
   :class:`~.models.Transaction` carrying the account info.

An empty transaction list is a normal outcome: it means no strategy could
read the text, and the caller should offer the raw text for manual entry.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence

from .account_info import extract_account_info
from .categorizer import categorize
from .learned import LearnedDescriptionStore
from .logging_setup import get_logger
from .merchants import MerchantDictionary, MerchantTables
from .models import DEFAULT_CATEGORY, AccountInfo, ParseResult, RawRecord, Transaction
from .resolver import resolve_store
from .strategies import Strategy, default_chain, run_chain

logger = get_logger("statement_extraction.statement")


def _imported_id() -> str:
    return f"imported_{uuid.uuid4().hex}"


def split_lines(text: str) -> list[str]:
    return [s for s in (line.strip() for line in text.splitlines()) if s]


def enhance(
    record: RawRecord,
    *,
    store: str,
    category: str,
    account: AccountInfo,
    bank_name: str | None = None,
    id_factory: Callable[[], str] = _imported_id,
) -> Transaction:
    """Attach identity, resolution results and account info to a record."""

    return Transaction(
        id=id_factory(),
        date=record.date,
        amount=record.amount,
        is_income=record.is_income,
        description=record.description,
        store=store,
        category=category,
        notes=record.notes,
        balance=record.balance,
        account_number=account.account_number,
        account_name=account.account_name,
        account_type=account.account_type,
        bank_name=account.bank_name or bank_name,
        source="statement",
        original_line=record.original_line,
    )


class StatementParser:
    """Parse statement text into transactions.

    ``merchants`` is either a live :class:`MerchantDictionary` (its current
    snapshot is read once per parse) or a fixed :class:`MerchantTables`.
    ``learned`` is consulted read-only: a learned category replaces the
    dictionary result when the learned entry is manual or when the
    dictionary had nothing better than ``"Other"``.
    """

    def __init__(
        self,
        merchants: MerchantDictionary | MerchantTables | None = None,
        *,
        learned: LearnedDescriptionStore | None = None,
        strategies: Callable[[Sequence[str]], Sequence[Strategy]] = default_chain,
        id_factory: Callable[[], str] = _imported_id,
    ) -> None:
        self.merchants = merchants if merchants is not None else MerchantTables.defaults()
        self.learned = learned
        self._strategies = strategies
        self._id_factory = id_factory

    def _tables(self) -> MerchantTables:
        if isinstance(self.merchants, MerchantDictionary):
            return self.merchants.tables()
        return self.merchants

    def _category(self, description: str, store: str, tables: MerchantTables) -> str:
        category = categorize(description, tables)
        if self.learned is None:
            return category
        match = self.learned.find_similar_store(store)
        if match is not None and (match.entry.is_manual or category == DEFAULT_CATEGORY):
            return match.entry.category
        return category

    def parse(self, text: str, *, bank_name: str | None = None) -> ParseResult:
        lines = split_lines(text)
        account = extract_account_info(lines)
        if not lines:
            return ParseResult(account, [], None)

        tables = self._tables()
        chain = run_chain(lines, self._strategies(lines))

        transactions: list[Transaction] = []
        for record in chain.records:
            store = resolve_store(record.description, tables)
            transactions.append(
                enhance(
                    record,
                    store=store,
                    category=self._category(record.description, store, tables),
                    account=account,
                    bank_name=bank_name,
                    id_factory=self._id_factory,
                )
            )

        if transactions:
            logger.info(
                "Parsed %d transactions with the %s strategy", len(transactions), chain.strategy
            )
        else:
            logger.info(
                "No transactions found after trying %s",
                ", ".join(name for name, _ in chain.attempts),
            )
        return ParseResult(account, transactions, chain.strategy)


def parse_statement(
    text: str,
    *,
    bank_name: str | None = None,
    merchants: MerchantDictionary | MerchantTables | None = None,
) -> ParseResult:
    """One-shot parse with default tables and no learned store."""

    return StatementParser(merchants).parse(text, bank_name=bank_name)


__all__ = ["StatementParser", "enhance", "parse_statement", "split_lines"]
