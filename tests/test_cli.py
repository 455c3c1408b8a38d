import json
from pathlib import Path

import pytest
import statement_extraction.cli as cli_mod
from statement_extraction.cli import (
    app,
    cmd_descriptions_clear,
    cmd_descriptions_create,
    cmd_descriptions_delete,
    cmd_descriptions_list,
    cmd_descriptions_stats,
    cmd_failed,
    cmd_import_statement,
    cmd_parse_message,
    cmd_parse_statement,
    cmd_summary,
)
from statement_extraction.config import Settings
from statement_extraction.failed_parsing import FailedParsingQueue
from statement_extraction.learned import LearnedDescriptionStore
from typer.testing import CliRunner

SMS = "Your card ending in 1234 was charged R250.00 at Woolworths Sandton on 2024/03/05"


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    return Settings(data_dir=data_dir)


@pytest.fixture
def statement_file(tmp_path: Path) -> Path:
    path = tmp_path / "statement.txt"
    path.write_text(
        "FNB Statement\nAccount: 62812345678 [Cheque]\n2024/03/02  R450.00 Shell Garage Sandton\n",
        encoding="utf-8",
    )
    return path


def test_parse_statement_json(
    settings: Settings, statement_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_parse_statement(statement_file, settings=settings) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["strategy"] == "standard"
    assert out["account_info"]["account_number"] == "62812345678"
    assert out["account_info"]["bank_name"] == "FNB"
    [tx] = out["transactions"]
    assert tx["date"] == "2024-03-02"
    assert tx["amount"] == "450.00"
    assert tx["store"] == "Shell"
    assert tx["category"] == "Transport"
    assert tx["account_type"] == "Cheque"


def test_parse_statement_tsv(
    settings: Settings, statement_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_parse_statement(statement_file, fmt="tsv", settings=settings) == 0
    assert capsys.readouterr().out.strip().split("\t") == [
        "2024-03-02",
        "-450.00",
        "Shell",
        "Transport",
        "Shell Garage Sandton",
    ]


def test_parse_statement_missing_file(
    settings: Settings, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_parse_statement(tmp_path / "nope.txt", settings=settings) == 1
    assert "Error: File not found" in capsys.readouterr().err


def test_unparseable_statement_is_queued(
    settings: Settings, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "letter.txt"
    path.write_text("Dear customer,\nNothing to see here.\n", encoding="utf-8")
    assert cmd_parse_statement(path, settings=settings) == 0
    assert "queued for manual entry" in capsys.readouterr().err
    [attempt] = FailedParsingQueue.open(settings.failed_path).all()
    assert attempt.source == "statement"
    assert attempt.original_text.startswith("Dear customer")

    assert cmd_parse_statement(path, queue_unparsed=False, settings=settings) == 0
    assert len(FailedParsingQueue.open(settings.failed_path)) == 1


def test_import_statement_twice(
    settings: Settings, statement_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_import_statement(statement_file, settings=settings) == 0
    assert cmd_import_statement(statement_file, settings=settings) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines == [
        "Imported 1 transactions (0 duplicates skipped).",
        "Imported 0 transactions (1 duplicates skipped).",
    ]


def test_parse_message_persist_and_summary(
    settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_parse_message(SMS, persist=True, settings=settings) == 0
    tx = json.loads(capsys.readouterr().out)
    assert tx["store"] == "Woolworths Sandton"
    assert tx["source"] == "sms"

    learned = LearnedDescriptionStore.open(settings.learned_path)
    # Learned once on ingestion; persisting the expense does not count it again.
    assert learned.get("woolworths sandton").count == 1

    assert cmd_summary(settings=settings) == 0
    out = capsys.readouterr().out
    assert "Transactions: 1" in out
    assert "Total spent:  R250.00" in out
    assert "2024-03" in out


def test_parse_message_rejections(
    settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cmd_parse_message("hello", source="email", settings=settings) == 1
    assert "source must be" in capsys.readouterr().err

    assert cmd_parse_message("Your OTP is 1234", source="notification", settings=settings) == 2
    assert cmd_failed(settings=settings) == 0
    out = capsys.readouterr().out.strip()
    attempt_id, source, _timestamp, excerpt = out.split("\t")
    assert (source, excerpt) == ("notification", "Your OTP is 1234")

    assert cmd_failed(mark_processed=attempt_id, settings=settings) == 0
    assert cmd_failed(mark_processed=attempt_id + "x", settings=settings) == 1
    capsys.readouterr()
    assert cmd_failed(settings=settings) == 0
    assert capsys.readouterr().out == ""


def test_descriptions_commands(settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
    assert cmd_descriptions_create("Gym", "Membership", "Health", settings=settings) == 0
    assert cmd_descriptions_create("GYM", "Other", "Other", settings=settings) == 1
    assert "Store already exists" in capsys.readouterr().err

    assert cmd_descriptions_list(settings=settings) == 0
    assert capsys.readouterr().out.strip() == "Gym\tMembership\tHealth\t0\tmanual"

    assert cmd_descriptions_stats(settings=settings) == 0
    assert "Stores: 1 (1 manual, 0 learned)" in capsys.readouterr().out

    assert cmd_descriptions_delete("gym", settings=settings) == 0
    assert cmd_descriptions_delete("gym", settings=settings) == 1

    cmd_descriptions_create("Spar", "Groceries", "Food", settings=settings)
    assert cmd_descriptions_clear(settings=settings) == 0
    assert len(LearnedDescriptionStore.open(settings.learned_path)) == 0


def test_typer_app(monkeypatch: pytest.MonkeyPatch, data_dir: Path) -> None:
    monkeypatch.setattr(cli_mod, "configure_logging", lambda **_kw: None)
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["descriptions", "create", "--store", "Gym", "--description", "Membership", "--category", "Health"],
    )
    assert result.exit_code == 0, result.output
    assert (data_dir / "learned_descriptions.json").exists()

    result = runner.invoke(app, ["descriptions", "clear"])
    assert result.exit_code == 1

    result = runner.invoke(app, ["parse-message", "--text", "Your OTP is 1234"])
    assert result.exit_code == 2
