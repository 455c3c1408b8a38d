"""Header-level account facts scanned from statement text.

One pass over every line. Each field is filled by the first line that yields
it and is never overwritten afterwards. Lines that match nothing are ignored;
extraction never raises.

Recognized shapes (case-insensitive labels)::

    Account: 62812345678 [Cheque Account]
    ACCOUNT:, 62812345678, [Gold Cheque]
    Balance:, -3500.00, 2184.00        (balance, available balance)
    Available Balance: R2,184.00
    Name:, MR J SMITH

The bank is recognized by name anywhere in the text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import AccountInfo
from .normalizers import parse_amount

# A number never ends inside a thousands group, so "1,250.50" stays whole.
_NUM = r"[+\-]?\s?R?\s?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?!\d|,\d{3}(?!\d))"

_ACCOUNT_LABEL_RE = re.compile(r"\baccount(?:\s+(?:number|no\.?))?\s*:", re.IGNORECASE)
_ACCOUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\baccount(?:\s+(?:number|no\.?))?\s*:\s*,\s*([^,\[\]]+)", re.IGNORECASE),
    re.compile(r"\baccount(?:\s+(?:number|no\.?))?\s*:\s*([^,\[\]]+)", re.IGNORECASE),
)
_ACCOUNT_TYPE_RE = re.compile(r"\[([^\]]+)\]")

_BALANCE_LABEL_RE = re.compile(r"balance\s*:", re.IGNORECASE)
_AVAILABLE_RE = re.compile(rf"available\s+balance\s*:\s*,?\s*({_NUM})", re.IGNORECASE)
_BALANCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"balance\s*:\s*,?\s*({_NUM})\s*,\s*({_NUM})", re.IGNORECASE),
    re.compile(rf"balance\s*:\s*,?\s*({_NUM})", re.IGNORECASE),
)

_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?<!bank )name\s*:\s*,\s*([^,]+)", re.IGNORECASE),
    re.compile(r"(?<!bank )name\s*:\s*([^,]+)", re.IGNORECASE),
)

# (needle, canonical bank name); matched case-sensitively, first hit wins.
KNOWN_BANKS: tuple[tuple[str, str], ...] = (
    ("FNB", "FNB"),
    ("First National Bank", "FNB"),
    ("ABSA", "ABSA"),
    ("Absa", "ABSA"),
    ("Standard Bank", "Standard Bank"),
    ("Nedbank", "Nedbank"),
    ("Capitec", "Capitec"),
    ("Investec", "Investec"),
    ("TymeBank", "TymeBank"),
    ("Discovery Bank", "Discovery Bank"),
    ("Bank Zero", "Bank Zero"),
    ("African Bank", "African Bank"),
)


def _first_group(patterns: Iterable[re.Pattern[str]], line: str) -> str | None:
    for rx in patterns:
        m = rx.search(line)
        if m:
            value = m.group(1).strip()
            if value:
                return value
    return None


def detect_bank(text: str) -> str | None:
    for needle, canonical in KNOWN_BANKS:
        if needle in text:
            return canonical
    return None


def extract_account_info(lines: Iterable[str]) -> AccountInfo:
    """Scan ``lines`` for account number, type, name, balances and bank."""

    found: dict[str, object] = {}

    for line in lines:
        lowered = line.lower()

        if "account_number" not in found and _ACCOUNT_LABEL_RE.search(line):
            number = _first_group(_ACCOUNT_PATTERNS, line)
            if number:
                found["account_number"] = number
            if "account_type" not in found:
                m = _ACCOUNT_TYPE_RE.search(line)
                if m and m.group(1).strip():
                    found["account_type"] = m.group(1).strip()

        if _BALANCE_LABEL_RE.search(line):
            m = _AVAILABLE_RE.search(line)
            if m:
                if "available_balance" not in found:
                    value = parse_amount(m.group(1))
                    if value is not None:
                        found["available_balance"] = value
            elif "balance" not in found:
                for rx in _BALANCE_PATTERNS:
                    m = rx.search(line)
                    if not m:
                        continue
                    value = parse_amount(m.group(1))
                    if value is None:
                        continue
                    found["balance"] = value
                    if rx.groups > 1 and "available_balance" not in found:
                        available = parse_amount(m.group(2))
                        if available is not None:
                            found["available_balance"] = available
                    break

        if "account_name" not in found and "name" in lowered:
            name = _first_group(_NAME_PATTERNS, line)
            if name:
                found["account_name"] = name

        if "bank_name" not in found:
            bank = detect_bank(line)
            if bank:
                found["bank_name"] = bank

    return AccountInfo(**found)  # type: ignore[arg-type]


__all__ = ["KNOWN_BANKS", "detect_bank", "extract_account_info"]
