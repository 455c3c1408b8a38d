"""Optional AI parser for SMS and notification text (OpenAI Responses API).

The parser asks the model for one strict-schema JSON object describing the
message and validates it into :class:`~.models.MessageParse`. It is a
best-effort collaborator: every SDK error, timeout, malformed body or schema
violation surfaces as :class:`~.errors.AIParseError`, which callers catch
and answer with the regex parser.

The client is built lazily through :func:`_create_client` so tests can
monkeypatch ``OpenAI`` in this module with a stub.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from openai import OpenAI, OpenAIError
from openai.types.responses import ResponseTextConfigParam
from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)
from pydantic import ValidationError

from .config import DEFAULT_AI_MODEL, DEFAULT_AI_TIMEOUT_SECONDS, Settings
from .errors import AIParseError
from .logging_setup import get_logger
from .models import MessageParse

logger = get_logger("statement_extraction.ai_parser")

AI_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Shopping",
    "Bills",
    "Entertainment",
    "Other",
)

INSTRUCTIONS = (
    "You are an expert at parsing South African bank SMS and app notifications. "
    "Decide whether the message records money being spent and, if so, extract it. "
    "Output JSON only that conforms to the specified schema."
)


def build_user_content(text: str, source: str) -> str:
    return (
        f"Parse this {source} message.\n\n"
        "Rules:\n"
        "- is_expense is true only for a clear spending transaction.\n"
        "- amount is in South African Rand as a positive number; null when not an expense.\n"
        "- store is the clean, readable merchant name; null when not an expense.\n"
        "- description is 1-3 words; null when not an expense.\n"
        "- category matches the store type; null when not an expense.\n"
        "- confidence (0-1) is how certain you are that this is an expense.\n\n"
        f"BEGIN_MESSAGE\n{text}\nEND_MESSAGE"
    )


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema ``format`` for one parsed message."""

    nullable_str = {"type": ["string", "null"]}
    return {
        "type": "json_schema",
        "name": "message_expense",
        "schema": {
            "type": "object",
            "properties": {
                "is_expense": {"type": "boolean"},
                "amount": {"type": ["number", "null"]},
                "store": nullable_str,
                "description": nullable_str,
                "category": {"type": ["string", "null"], "enum": [*AI_CATEGORIES, None]},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            },
            "required": [
                "is_expense",
                "amount",
                "store",
                "description",
                "category",
                "confidence",
            ],
            "additionalProperties": False,
        },
        "strict": True,
    }


def _extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON object from a Responses result.

    Prefers ``resp.output_text`` and falls back to
    ``resp.output[0].content[0].text``.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None) or []
        content = getattr(output[0], "content", None) if output else None
        if content:
            txt_obj = getattr(content[0], "text", None)
            if isinstance(txt_obj, str):
                text = txt_obj
            elif isinstance(getattr(txt_obj, "value", None), str):
                text = txt_obj.value
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    decoded = json.loads(text)
    if not isinstance(decoded, Mapping):
        raise ValueError("Model output was not a JSON object")
    return decoded


def _create_client(api_key: str | None, timeout: float) -> OpenAI:
    # No SDK retries: a slow answer is worth less than the regex fallback.
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class AIParser:
    """Parse one message with the model named by ``model``.

    ``client`` may be injected directly; otherwise one is created on first use
    from ``api_key`` and ``timeout``.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_AI_MODEL,
        timeout: float = DEFAULT_AI_TIMEOUT_SECONDS,
        client: Any | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> AIParser | None:
        """Return a parser when an API key is configured, else ``None``."""

        if not settings.openai_api_key:
            return None
        return cls(
            api_key=settings.openai_api_key,
            model=settings.ai_model,
            timeout=settings.ai_timeout_seconds,
        )

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _create_client(self.api_key, self.timeout)
        return self._client

    def parse(self, text: str, source: str = "notification") -> MessageParse:
        text_cfg = ResponseTextConfigParam(format=build_response_format())
        try:
            resp = self._get_client().responses.create(
                model=self.model,
                instructions=INSTRUCTIONS,
                input=build_user_content(text, source),
                text=text_cfg,
                timeout=self.timeout,
            )
            data = dict(_extract_response_json_mapping(resp))
        except (OpenAIError, ValueError) as e:
            raise AIParseError(f"AI request failed: {e}") from e

        amount = data.get("amount")
        if isinstance(amount, float | int) and not isinstance(amount, bool):
            data["amount"] = Decimal(str(amount))
        try:
            parsed = MessageParse.model_validate(data)
        except ValidationError as e:
            raise AIParseError(f"AI output failed validation: {e.error_count()} errors") from e
        logger.debug(
            "AI parse: is_expense=%s confidence=%.2f store=%r",
            parsed.is_expense,
            parsed.confidence,
            parsed.store,
        )
        return parsed


__all__ = [
    "AI_CATEGORIES",
    "AIParser",
    "build_response_format",
    "build_user_content",
]
