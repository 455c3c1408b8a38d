"""Transaction capture from SMS and push-notification text.

Two parsers feed one ingestion path:

- :func:`parse_message_with_regex`, a fixed ordered list of bank alert
  phrasings;
- an optional :class:`~.ai_parser.AIParser`, tried first when configured and
  trusted only when it is confident.

:class:`MessageIngestor` turns an accepted parse into a
:class:`~.models.Transaction` whose description and category come from the
learned-description store, so each captured message also teaches the store.
Rejected messages go to the failed-parsing queue for manual processing.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from datetime import date, datetime
from typing import Literal, Protocol, TypeAlias

from .errors import AIParseError
from .failed_parsing import FailedParsingQueue
from .learned import LearnedDescriptionStore
from .logging_setup import get_logger
from .models import MessageParse, Transaction, utcnow
from .normalizers import parse_amount, parse_date

logger = get_logger("statement_extraction.messages")

MessageSource: TypeAlias = Literal["sms", "notification"]

REGEX_CONFIDENCE = 0.8
AI_ACCEPT_CONFIDENCE = 0.7
INGEST_CONFIDENCE = 0.5
NOTE_EXCERPT_CHARS = 100

_AMT = r"R?\s*(?P<amount>\d[\d,]*(?:\.\d{1,2})?)"
# The store runs lazily up to the first trailing qualifier or the end.
_STORE = (
    r"(?P<store>.+?)"
    r"(?=\s+on\s|\s+ref|\s*[.,;]?\s+available\b|\s+completed\b|\s*[.,;]?\s*$)"
)

MESSAGE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        rf"card\s+ending\s+in\s+\d+\s+(?:was\s+)?charged\s*{_AMT}\s+at\s+{_STORE}",
        rf"transaction\s+alert:\s*{_AMT}\s+debit\s+at\s+{_STORE}",
        rf"payment\s+of\s*{_AMT}\s+to\s+{_STORE}",
        rf"debit:\s*{_AMT}\s+at\s+{_STORE}",
        rf"purchase:\s*{_AMT}\s+at\s+{_STORE}",
        rf"transaction:\s*{_AMT}\s+at\s+{_STORE}",
        rf"spent\s*{_AMT}\s+at\s+{_STORE}",
    )
)

_MESSAGE_DATE_RE = re.compile(r"\bon\s+(\d{1,4}[/\-]\d{1,2}[/\-]\d{2,4})\b", re.IGNORECASE)

NOT_AN_EXPENSE = MessageParse(is_expense=False, confidence=0.0)


class MessageParser(Protocol):
    def parse(self, text: str, source: str = ...) -> MessageParse: ...


def parse_message_with_regex(text: str) -> MessageParse:
    """Return the first matching pattern's amount and store, or a non-expense."""

    for rx in MESSAGE_PATTERNS:
        m = rx.search(text)
        if not m:
            continue
        amount = parse_amount(m.group("amount"))
        store = m.group("store").strip().rstrip(".,;").strip()
        if amount is None or amount <= 0 or not store:
            continue
        return MessageParse(
            is_expense=True,
            amount=amount,
            store=store,
            confidence=REGEX_CONFIDENCE,
        )
    return NOT_AN_EXPENSE


def message_date(text: str) -> date | None:
    m = _MESSAGE_DATE_RE.search(text)
    return parse_date(m.group(1)) if m else None


class MessageIngestor:
    """Parse one message and build a transaction from it.

    ``ai_parser`` and ``failed_queue`` are optional. ``clock`` supplies the
    fallback transaction date when the message carries none.
    """

    def __init__(
        self,
        learned: LearnedDescriptionStore,
        *,
        ai_parser: MessageParser | None = None,
        failed_queue: FailedParsingQueue | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.learned = learned
        self.ai_parser = ai_parser
        self.failed_queue = failed_queue
        self._clock = clock

    def parse(self, text: str, source: MessageSource = "sms") -> tuple[MessageParse, str]:
        """Return the parse to use and a label for how it was obtained."""

        if self.ai_parser is not None:
            try:
                parsed = self.ai_parser.parse(text, source)
            except AIParseError as e:
                logger.warning("AI parse failed; falling back to regex: %s", e)
            else:
                if parsed.is_expense and parsed.confidence > AI_ACCEPT_CONFIDENCE:
                    return parsed, f"AI confidence: {round(parsed.confidence * 100)}%"
                logger.debug("AI parse not confident (%.2f); using regex", parsed.confidence)
        return parse_message_with_regex(text), "regex"

    def ingest(self, text: str, source: MessageSource = "sms") -> Transaction | None:
        """Return a transaction for ``text`` or ``None`` when nothing usable was found.

        A ``None`` result queues the raw text for manual processing.
        """

        parsed, how = self.parse(text, source)
        if (
            not parsed.is_expense
            or parsed.confidence <= INGEST_CONFIDENCE
            or parsed.amount is None
            or not parsed.store
        ):
            logger.info("No expense recognized in %s message", source)
            if self.failed_queue is not None:
                self.failed_queue.add(text, source)
            return None

        store = parsed.store
        description = self.learned.get_description(store, parsed.amount)
        category = self.learned.category_for_store(store)
        label = "SMS" if source == "sms" else source
        excerpt = text[:NOTE_EXCERPT_CHARS]
        when = message_date(text) or self._clock().date()

        tx = Transaction(
            id=f"{source}_{uuid.uuid4().hex}",
            date=when,
            amount=parsed.amount,
            is_income=False,
            description=description,
            store=store,
            category=category,
            notes=f'Auto-detected from {label} ({how}): "{excerpt}"',
            source=source,
            original_line=text,
        )
        logger.info("Captured %s expense R%s at %s (%s)", source, tx.amount, store, category)
        return tx


__all__ = [
    "MESSAGE_PATTERNS",
    "MessageIngestor",
    "MessageParser",
    "message_date",
    "parse_message_with_regex",
]
