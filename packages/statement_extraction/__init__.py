"""Public interface for the ``statement_extraction`` package.

This module exposes the service objects, pure parsing functions and public
models as the stable import surface. There is no runtime logic here, only
symbol re-exports.
"""

from .account_info import extract_account_info
from .categorizer import categorize, default_category, default_description
from .config import Settings
from .errors import AIParseError, DuplicateStoreError, MerchantSourceError, StatementExtractionError
from .failed_parsing import FailedParsingQueue
from .learned import LearnedDescriptionStore, StoreMatch, similarity
from .merchants import FileMerchantSource, HttpMerchantSource, MerchantDictionary, MerchantTables
from .messages import MessageIngestor, parse_message_with_regex
from .models import (
    AccountInfo,
    FailedAttempt,
    LearnedDescription,
    MessageParse,
    ParseResult,
    RawRecord,
    Transaction,
)
from .normalizers import parse_amount, parse_date
from .resolver import resolve_store
from .statement import StatementParser, parse_statement

__all__ = [
    # Services
    "StatementParser",
    "MerchantDictionary",
    "LearnedDescriptionStore",
    "MessageIngestor",
    "FailedParsingQueue",
    "FileMerchantSource",
    "HttpMerchantSource",
    "Settings",
    # Functions
    "parse_statement",
    "parse_date",
    "parse_amount",
    "extract_account_info",
    "resolve_store",
    "categorize",
    "default_category",
    "default_description",
    "parse_message_with_regex",
    "similarity",
    # Models
    "AccountInfo",
    "FailedAttempt",
    "LearnedDescription",
    "MerchantTables",
    "MessageParse",
    "ParseResult",
    "RawRecord",
    "StoreMatch",
    "Transaction",
    # Errors
    "StatementExtractionError",
    "DuplicateStoreError",
    "MerchantSourceError",
    "AIParseError",
]
