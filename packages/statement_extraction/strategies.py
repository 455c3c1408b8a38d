"""Line strategies for statement text and the chain that runs them.

A strategy takes the non-blank, stripped lines of one input and returns a
tagged :data:`StrategyResult`:

- :class:`Success` with at least one :class:`~.models.RawRecord`;
- :data:`EMPTY` when the strategy ran but recognized nothing;
- :class:`Failure` when the strategy raised (produced by the chain runner,
  never by a strategy itself).

Lines a strategy cannot read (no date, no amount, zero amount, noise
description) are skipped silently. Every strategy normalizes direction when
it builds a record: ``amount`` is the magnitude and ``is_income`` the sign.

:func:`run_chain` tries strategies in order and returns the first
:class:`Success`; :func:`default_chain` picks the order for a given input.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import NamedTuple, TypeAlias

from .logging_setup import get_logger
from .models import RawRecord
from .normalizers import (
    AMOUNT_TOKEN_RE,
    DATE_TOKEN_RE,
    LOOSE_DATE_TOKEN_RE,
    clean_description,
    find_amount_token,
    parse_amount,
    parse_date,
)

logger = get_logger("statement_extraction.strategies")

MIN_DESCRIPTION_LENGTH = 4
MIN_TABLE_ROW_LENGTH = 21

STATEMENT_NOTE = "Imported from bank statement"
CSV_NOTE = "Imported from CSV bank statement"

_COLUMN_SPLIT_RE = re.compile(r"\s{2,}")


@dataclass(frozen=True, slots=True)
class Success:
    records: tuple[RawRecord, ...]


@dataclass(frozen=True, slots=True)
class Empty:
    pass


@dataclass(frozen=True, slots=True)
class Failure:
    reason: str


EMPTY = Empty()

StrategyResult: TypeAlias = Success | Empty | Failure
StrategyFn: TypeAlias = Callable[[Sequence[str]], StrategyResult]


class Strategy(NamedTuple):
    name: str
    fn: StrategyFn


class ChainResult(NamedTuple):
    """Outcome of :func:`run_chain`.

    ``strategy`` is the name of the strategy that succeeded (``None`` when
    none did) and ``attempts`` records every strategy tried, in order.
    """

    strategy: str | None
    records: list[RawRecord]
    attempts: tuple[tuple[str, StrategyResult], ...]


def _result(records: list[RawRecord]) -> StrategyResult:
    return Success(tuple(records)) if records else EMPTY


def _is_income(token: str, value: Decimal) -> bool:
    # Positional layouts only mark credits with an explicit leading plus.
    return value > 0 and token.strip().startswith("+")


def _record(
    when: date,
    value: Decimal,
    description: str,
    line: str,
    *,
    is_income: bool,
    balance: Decimal | None = None,
    notes: str = STATEMENT_NOTE,
) -> RawRecord:
    return RawRecord(
        date=when,
        amount=abs(value),
        description=description,
        is_income=is_income,
        balance=balance,
        original_line=line,
        notes=notes,
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _date_amount_lines(
    lines: Sequence[str], date_re: re.Pattern[str], min_description: int
) -> list[RawRecord]:
    records: list[RawRecord] = []
    for line in lines:
        dm = date_re.search(line)
        if not dm:
            continue
        when = parse_date(dm.group(0))
        if when is None:
            continue
        rest = f"{line[: dm.start()]} {line[dm.end():]}"
        am = find_amount_token(rest)
        if not am:
            continue
        value = parse_amount(am.group(0))
        if value is None or value == 0:
            continue
        description = clean_description(f"{rest[: am.start()]} {rest[am.end():]}")
        if len(description) < min_description:
            continue
        records.append(
            _record(when, value, description, line, is_income=_is_income(am.group(0), value))
        )
    return records


def standard_strategy(lines: Sequence[str]) -> StrategyResult:
    """Date token (year-first preferred) plus an amount token anywhere on the line."""

    return _result(_date_amount_lines(lines, DATE_TOKEN_RE, MIN_DESCRIPTION_LENGTH))


def is_csv_header(line: str) -> bool:
    lowered = line.lower()
    return "date" in lowered and "amount" in lowered and "description" in lowered


def csv_strategy(lines: Sequence[str]) -> StrategyResult:
    """``Date, Amount, Balance, Description`` rows after a header row.

    Only the first three commas split; the description keeps any further
    commas. A negative amount is an expense, anything else income.
    """

    header = next((i for i, line in enumerate(lines) if is_csv_header(line)), None)
    if header is None:
        return EMPTY

    records: list[RawRecord] = []
    for line in lines[header + 1 :]:
        parts = line.split(",", 3)
        if len(parts) < 4:
            continue
        date_s, amount_s, balance_s, description = (p.strip() for p in parts)
        description = clean_description(description.strip('"'))
        when = parse_date(date_s)
        value = parse_amount(amount_s.strip('"'))
        if when is None or value is None or value == 0 or not description:
            continue
        is_income = value > 0
        records.append(
            _record(
                when,
                value,
                description,
                line,
                is_income=is_income,
                balance=parse_amount(balance_s.strip('"')) if balance_s else None,
                notes=CSV_NOTE + (" (Income)" if is_income else ""),
            )
        )
    return _result(records)


def looks_like_table_row(line: str) -> bool:
    return (
        len(line) >= MIN_TABLE_ROW_LENGTH
        and DATE_TOKEN_RE.search(line) is not None
        and AMOUNT_TOKEN_RE.search(line) is not None
    )


def table_strategy(lines: Sequence[str]) -> StrategyResult:
    """Columns separated by runs of two or more spaces: date, description..., amount."""

    records: list[RawRecord] = []
    for line in lines:
        if not looks_like_table_row(line):
            continue
        parts = [p for p in (c.strip() for c in _COLUMN_SPLIT_RE.split(line)) if p]
        if len(parts) < 3:
            continue
        when = parse_date(parts[0])
        value = parse_amount(parts[-1])
        if when is None or value is None or value == 0:
            continue
        description = clean_description(" ".join(parts[1:-1]))
        if not description:
            continue
        records.append(
            _record(when, value, description, line, is_income=_is_income(parts[-1], value))
        )
    return _result(records)


def generic_strategy(lines: Sequence[str]) -> StrategyResult:
    """Last resort: any date shape, dotted and month-name dates included."""

    return _result(_date_amount_lines(lines, LOOSE_DATE_TOKEN_RE, MIN_DESCRIPTION_LENGTH))


STANDARD = Strategy("standard", standard_strategy)
CSV = Strategy("csv", csv_strategy)
TABLE = Strategy("table", table_strategy)
GENERIC = Strategy("generic", generic_strategy)


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


def default_chain(lines: Sequence[str]) -> list[Strategy]:
    """CSV first when a header row is present, otherwise standard first."""

    if any(is_csv_header(line) for line in lines):
        return [CSV, STANDARD, TABLE, GENERIC]
    return [STANDARD, CSV, TABLE, GENERIC]


def run_chain(lines: Sequence[str], strategies: Sequence[Strategy]) -> ChainResult:
    attempts: list[tuple[str, StrategyResult]] = []
    for strategy in strategies:
        try:
            result = strategy.fn(lines)
        except Exception as e:
            logger.warning("Strategy %s failed: %s", strategy.name, e, exc_info=True)
            result = Failure(f"{type(e).__name__}: {e}")
        attempts.append((strategy.name, result))
        if isinstance(result, Success):
            logger.debug("Strategy %s produced %d records", strategy.name, len(result.records))
            return ChainResult(strategy.name, list(result.records), tuple(attempts))
        logger.debug("Strategy %s produced nothing", strategy.name)
    return ChainResult(None, [], tuple(attempts))


__all__ = [
    "CSV",
    "EMPTY",
    "GENERIC",
    "STANDARD",
    "TABLE",
    "ChainResult",
    "Empty",
    "Failure",
    "Strategy",
    "StrategyResult",
    "Success",
    "csv_strategy",
    "default_chain",
    "generic_strategy",
    "run_chain",
    "standard_strategy",
    "table_strategy",
]
