from decimal import Decimal
from pathlib import Path

import pytest
import statement_extraction.ai_parser as ai_parser_mod
from openai import OpenAIError
from statement_extraction.ai_parser import AIParser, build_response_format
from statement_extraction.config import Settings
from statement_extraction.errors import AIParseError
from statement_extraction.learned import LearnedDescriptionStore
from statement_extraction.messages import MessageIngestor

from tests.helpers.openai_stub import NOT_EXPENSE_ANSWER, OpenAIStub, expense_answer


def test_response_format_is_strict_and_requires_every_field() -> None:
    fmt = build_response_format()
    assert fmt["type"] == "json_schema"
    assert fmt["strict"] is True
    schema = fmt["schema"]
    assert schema["additionalProperties"] is False
    assert set(schema["required"]) == set(schema["properties"])


def test_from_settings_requires_api_key(tmp_path: Path) -> None:
    assert AIParser.from_settings(Settings(data_dir=tmp_path)) is None
    parser = AIParser.from_settings(
        Settings(data_dir=tmp_path, openai_api_key="sk-test", ai_model="gpt-test")
    )
    assert parser is not None
    assert parser.model == "gpt-test"


def test_client_created_lazily_with_no_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[OpenAIStub] = []

    def _factory(**kwargs):
        stub = OpenAIStub(lambda _msg: expense_answer(amount=45.5, store="Vida e Caffe"), **kwargs)
        created.append(stub)
        return stub

    monkeypatch.setattr(ai_parser_mod, "OpenAI", _factory)
    parser = AIParser(api_key="sk-test", model="gpt-test", timeout=3.0)
    parsed = parser.parse("Card purchase R45.50 Vida e Caffe", "sms")

    [client] = created
    assert client.client_kwargs == {"api_key": "sk-test", "timeout": 3.0, "max_retries": 0}
    assert parsed.is_expense is True
    assert parsed.amount == Decimal("45.5")
    assert parsed.store == "Vida e Caffe"

    [call] = client.calls
    assert call["model"] == "gpt-test"
    assert call["timeout"] == 3.0
    assert call["text"]["format"]["name"] == "message_expense"
    assert "Parse this sms message." in call["input"]


def test_non_expense_answer() -> None:
    parser = AIParser(client=OpenAIStub(lambda _msg: NOT_EXPENSE_ANSWER))
    parsed = parser.parse("Your OTP is 1234")
    assert parsed.is_expense is False
    assert parsed.amount is None


@pytest.mark.parametrize(
    "answer",
    [
        "not json at all",
        "[1, 2, 3]",
        {**NOT_EXPENSE_ANSWER, "is_expense": True},
        {**NOT_EXPENSE_ANSWER, "confidence": 2},
    ],
)
def test_bad_answers_raise_parse_error(answer) -> None:
    parser = AIParser(client=OpenAIStub(lambda _msg: answer))
    with pytest.raises(AIParseError):
        parser.parse("anything")


def test_sdk_error_raises_parse_error() -> None:
    def _boom(_msg: str):
        raise OpenAIError("connection reset")

    parser = AIParser(client=OpenAIStub(_boom))
    with pytest.raises(AIParseError, match="connection reset"):
        parser.parse("anything")


def test_ingestor_with_stubbed_ai_end_to_end() -> None:
    stub = OpenAIStub(lambda msg: expense_answer(amount=120, store="Mugg & Bean", confidence=0.95))
    ingestor = MessageIngestor(LearnedDescriptionStore(), ai_parser=AIParser(client=stub))
    tx = ingestor.ingest("FNB: R120.00 paid at MUGG&BEAN ROSEBANK", "notification")
    assert tx is not None
    assert tx.store == "Mugg & Bean"
    assert tx.amount == Decimal("120")
    assert "AI confidence: 95%" in tx.notes
