"""Date, amount and description normalization for statement text.

Everything here is pure: no I/O, no logging, no exceptions for bad input.
Unparseable tokens come back as ``None`` so callers can skip the line and keep
going.

Dates
-----
``parse_date`` accepts, in order:

1. year-first tokens (``YYYY/M/D``, ``YYYY-M-D``, ``YYYY.M.D``);
2. two-part-year tokens (``a/b/YYYY`` or ``a/b/YY``), tried as month/day and
   then day/month;
3. day + month-name tokens (``15 Jan 2024``, ``3 March 24``).

Only calendar-valid dates with a year in ``[2000, 2030)`` are accepted.
Two-digit years expand to ``20YY``.

Amounts
-------
``parse_amount`` strips the currency symbol, thousands separators and
whitespace and returns a signed :class:`~decimal.Decimal`. Zero is a valid
return value; callers treat it as "no transaction".
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

MIN_YEAR = 2000
MAX_YEAR_EXCLUSIVE = 2030

_YEAR_FIRST_RE = re.compile(r"(?<!\d)(\d{4})[/.\-](\d{1,2})[/.\-](\d{1,2})(?!\d)")
_TWO_PART_YEAR_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})(?!\d)"),
    re.compile(r"(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2})(?!\d)"),
)
_MONTH_NAME_RE = re.compile(
    r"(?<!\d)(\d{1,2})[\s\-]+([A-Za-z]{3,9})\.?[\s\-]+(\d{4}|\d{2})(?!\d)"
)

_MONTH_NAMES: tuple[str, ...] = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

# Token-level regexes shared by the line strategies. ``DATE_TOKEN_RE`` prefers
# a year-first date at any given position; ``LOOSE_DATE_TOKEN_RE`` has no such
# priority and also accepts dotted and month-name dates.
DATE_TOKEN_RE = re.compile(
    r"(?<!\d)(?:\d{4}[/\-]\d{1,2}[/\-]\d{1,2}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})(?!\d)"
)
LOOSE_DATE_TOKEN_RE = re.compile(
    r"(?<!\d)(?:\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}"
    r"|\d{1,2}[\s\-]+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?[\s\-]+\d{2,4}"
    r"|\d{4}[/.\-]\d{1,2}[/.\-]\d{1,2})(?!\d)",
    re.IGNORECASE,
)
# An amount token: optional sign and currency symbol, grouped or plain digits,
# optional cents. Neighbouring word characters and date separators are
# excluded so dates, references and store numbers are not read as amounts.
AMOUNT_TOKEN_RE = re.compile(
    r"(?<![\w.,/\-])[+\-]?\s?R?\s?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?(?![\d/]|[.,]\d)"
)
DECIMAL_AMOUNT_TOKEN_RE = re.compile(
    r"(?<![\w.,/\-])[+\-]?\s?R?\s?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}(?![\d/]|[.,]\d)"
)

_CURRENCY_RE = re.compile(r"(?i)\bZAR\b|[R$£€]")
_WS_RE = re.compile(r"\s+")


def _valid_date(year: int, month: int, day: int) -> date | None:
    if not (MIN_YEAR <= year < MAX_YEAR_EXCLUSIVE):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(raw: str) -> int:
    return int("20" + raw) if len(raw) == 2 else int(raw)


def _month_number(raw: str) -> int | None:
    # "Jan", "January" and "Sept" all count; "Janx" does not.
    key = raw.lower()
    for idx, name in enumerate(_MONTH_NAMES, start=1):
        if name.startswith(key) and len(key) >= 3:
            return idx
    return None


def parse_date(token: str | None) -> date | None:
    """Return the calendar date encoded in ``token`` or ``None``.

    A year-first token that is out of range or not a real date returns
    ``None`` without trying the ambiguous orderings.
    """

    if not token:
        return None
    s = token.strip()
    if not s:
        return None

    m = _YEAR_FIRST_RE.search(s)
    if m:
        y, mo, d = (int(p) for p in m.groups())
        return _valid_date(y, mo, d)

    for rx in _TWO_PART_YEAR_RES:
        m = rx.search(s)
        if not m:
            continue
        p1, p2, p3 = m.groups()
        year = _expand_year(p3)
        a, b = int(p1), int(p2)
        # Orderings: p1/p2/p3 and p2/p1/p3 read as month/day/year. The third
        # reading, p3/p1/p2 as year/month/day, is the same date as the first.
        for month, day in ((a, b), (b, a)):
            found = _valid_date(year, month, day)
            if found is not None:
                return found
        return None

    m = _MONTH_NAME_RE.search(s)
    if m:
        day_raw, month_raw, year_raw = m.groups()
        month = _month_number(month_raw)
        if month is None:
            return None
        return _valid_date(_expand_year(year_raw), month, int(day_raw))

    return None


def parse_amount(token: str | None) -> Decimal | None:
    """Return the signed amount in ``token`` or ``None`` when not numeric.

    ``"R1,234.56"`` → ``Decimal("1234.56")``; ``"-R45.00"`` →
    ``Decimal("-45.00")``; ``"(12.00)"`` → ``Decimal("-12.00")``.
    """

    if token is None:
        return None
    s = _CURRENCY_RE.sub("", token)
    s = _WS_RE.sub("", s).replace(",", "")
    if not s:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")") and len(s) > 2:
        negative = True
        s = s[1:-1]
    if s.endswith("-") and not s.startswith("-"):
        # Trailing minus, as some statement exports print debits.
        negative = True
        s = s[:-1]

    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -abs(value) if negative else value


def clean_description(text: str) -> str:
    """Collapse internal whitespace and trim."""

    return _WS_RE.sub(" ", text).strip()


def find_amount_token(text: str) -> re.Match[str] | None:
    """Return the best amount-shaped match in ``text``.

    Tokens with cents win over bare integers so reference numbers and store
    numbers are not mistaken for the amount.
    """

    return DECIMAL_AMOUNT_TOKEN_RE.search(text) or AMOUNT_TOKEN_RE.search(text)


__all__ = [
    "AMOUNT_TOKEN_RE",
    "DATE_TOKEN_RE",
    "LOOSE_DATE_TOKEN_RE",
    "clean_description",
    "find_amount_token",
    "parse_amount",
    "parse_date",
]
