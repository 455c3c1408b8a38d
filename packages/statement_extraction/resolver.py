"""Resolve a display store name from a free-text transaction description."""

from __future__ import annotations

import re

from .merchants import MerchantTables
from .models import UNKNOWN_STORE

# Chains that statements abbreviate or spell inconsistently enough that a
# plain substring match against the dictionary misses them. Order matters:
# the first matching pattern wins.
STORE_ALIASES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bpick\s*['n&]+\s*pay\b|\bp\s*n\s*p\b", re.IGNORECASE), "Pick n Pay"),
    (re.compile(r"\bwoolies\b|\bwoolworth", re.IGNORECASE), "Woolworths"),
    (re.compile(r"\bmc\s*donald'?s?\b|\bmcd\b", re.IGNORECASE), "McDonald's"),
    (re.compile(r"\bkfc\b|\bkentucky\s+fried\b", re.IGNORECASE), "KFC"),
    (re.compile(r"\bnando'?s\b", re.IGNORECASE), "Nando's"),
    (re.compile(r"\bdis[\s\-]?chem\b", re.IGNORECASE), "Dischem"),
    (re.compile(r"\bf(?:ood)?\s*lovers?\b", re.IGNORECASE), "Food Lovers"),
    (re.compile(r"\bamzn\b", re.IGNORECASE), "Amazon"),
    (re.compile(r"\bsbux\b|\bstarbucks\b", re.IGNORECASE), "Starbucks"),
    (re.compile(r"\bvida\s*e?\s*caf+e\b", re.IGNORECASE), "Vida e Caffe"),
    (re.compile(r"\bmr\s*p(?:rice)?\b", re.IGNORECASE), "Mr Price"),
    (re.compile(r"\bcity\s+of\s+(?:johannesburg|cape\s+town|tshwane)\b", re.IGNORECASE), "Municipality"),
)


def resolve_store(description: str, tables: MerchantTables) -> str:
    """Return the store name for ``description``.

    Order: dictionary merchant (case-insensitive substring, dictionary
    order), then :data:`STORE_ALIASES`, then the first two words of the
    description, then ``"Unknown Store"``.
    """

    lowered = description.lower()
    for name, _category in tables.merchants:
        if name.lower() in lowered:
            return name

    for rx, canonical in STORE_ALIASES:
        if rx.search(description):
            return canonical

    words = description.split()
    if len(words) >= 2:
        return " ".join(words[:2])
    if words:
        return words[0]
    return UNKNOWN_STORE


__all__ = ["STORE_ALIASES", "resolve_store"]
