"""CLI for the ``statement_extraction`` package.

This module exposes callable command handlers (``cmd_parse_statement``,
``cmd_parse_message``, ...) that return a process exit code, and a
Typer-based console interface that delegates to them. Environment variables
are loaded from a local ``.env`` via ``python-dotenv`` before any command runs;
see :mod:`statement_extraction.config` for the variables read.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .ai_parser import AIParser
from .config import Settings
from .errors import DuplicateStoreError
from .failed_parsing import FailedParsingQueue
from .learned import LearnedDescriptionStore
from .ledger import ExpenseLedger
from .logging_setup import configure_logging, get_logger
from .merchants import FileMerchantSource, HttpMerchantSource, MerchantDictionary
from .messages import MessageIngestor
from .models import ParseResult, Transaction
from .statement import StatementParser

logger = get_logger("statement_extraction.cli")


# ---- Small module-level helpers used by CLI commands ------------------------


def _merchant_dictionary(settings: Settings) -> MerchantDictionary:
    source: HttpMerchantSource | FileMerchantSource | None = None
    if settings.merchants_url:
        source = HttpMerchantSource(settings.merchants_url)
    elif settings.merchants_file:
        source = FileMerchantSource(settings.merchants_file)
    return MerchantDictionary(source, reload_interval=settings.merchants_reload_seconds)


@contextmanager
def _statement_parser(settings: Settings, *, use_learned: bool) -> Iterator[StatementParser]:
    with _merchant_dictionary(settings) as merchants:
        merchants.load()
        learned = LearnedDescriptionStore.open(settings.learned_path) if use_learned else None
        yield StatementParser(merchants, learned=learned)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
    except OSError as e:
        print(f"Error: Unexpected failure reading '{path}': {e}", file=sys.stderr)
    return None


def _account_dict(result: ParseResult) -> dict[str, Any]:
    out = asdict(result.account_info)
    for k in ("balance", "available_balance"):
        if out[k] is not None:
            out[k] = f"{out[k]:.2f}"
    return out


def _print_tsv(transactions: Sequence[Transaction]) -> None:
    for t in transactions:
        sign = "+" if t.is_income else "-"
        print(f"{t.date.isoformat()}\t{sign}{t.amount:.2f}\t{t.store}\t{t.category}\t{t.description}")


def _ledger(settings: Settings, learned: LearnedDescriptionStore | None = None) -> ExpenseLedger:
    # The default SQLite file lives in the data dir, which may not exist yet.
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return ExpenseLedger(settings.resolved_database_url(), learned=learned)


def _queue_unparsed(settings: Settings, text: str, source: str) -> None:
    attempt = FailedParsingQueue.open(settings.failed_path).add(text, source)
    print(
        f"No transactions found; raw text queued for manual entry (id={attempt.id}).",
        file=sys.stderr,
    )


# ---- Command handlers --------------------------------------------------------


def cmd_parse_statement(
    path: Path,
    *,
    bank_name: str | None = None,
    fmt: str = "json",
    use_learned: bool = True,
    queue_unparsed: bool = True,
    settings: Settings | None = None,
) -> int:
    """Parse a statement text file and print its account info and transactions."""

    settings = settings or Settings.from_env()
    text = _read_text(path)
    if text is None:
        return 1

    with _statement_parser(settings, use_learned=use_learned) as parser:
        result = parser.parse(text, bank_name=bank_name)

    if not result.transactions:
        if queue_unparsed:
            _queue_unparsed(settings, text, "statement")
        else:
            print("No transactions found.", file=sys.stderr)
        return 0

    if fmt == "json":
        print(
            json.dumps(
                {
                    "strategy": result.strategy,
                    "account_info": _account_dict(result),
                    "transactions": [t.to_json_dict() for t in result.transactions],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
    else:
        _print_tsv(result.transactions)
    return 0


def cmd_import_statement(
    path: Path,
    *,
    bank_name: str | None = None,
    queue_unparsed: bool = True,
    settings: Settings | None = None,
) -> int:
    """Parse a statement file and insert its rows into the ledger."""

    settings = settings or Settings.from_env()
    text = _read_text(path)
    if text is None:
        return 1

    with _statement_parser(settings, use_learned=True) as parser:
        result = parser.parse(text, bank_name=bank_name)
    if not result.transactions:
        if queue_unparsed:
            _queue_unparsed(settings, text, "statement")
        return 0

    try:
        ledger = _ledger(settings)
        summary = ledger.import_transactions(result.transactions)
    except Exception as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1
    print(f"Imported {summary.inserted} transactions ({summary.skipped} duplicates skipped).")
    return 0


def cmd_parse_message(
    text: str,
    *,
    source: str = "sms",
    persist: bool = False,
    settings: Settings | None = None,
) -> int:
    """Parse one SMS/notification; optionally add the expense to the ledger."""

    if source not in ("sms", "notification"):
        print(f"Error: source must be 'sms' or 'notification', got {source!r}", file=sys.stderr)
        return 1
    settings = settings or Settings.from_env()
    learned = LearnedDescriptionStore.open(settings.learned_path)
    ingestor = MessageIngestor(
        learned,
        ai_parser=AIParser.from_settings(settings),
        failed_queue=FailedParsingQueue.open(settings.failed_path),
    )
    tx = ingestor.ingest(text, source)  # type: ignore[arg-type]
    if tx is None:
        print("No expense recognized; message queued for manual entry.", file=sys.stderr)
        return 2

    if persist:
        try:
            _ledger(settings, learned).add_expense(tx)
        except Exception as e:
            print(f"Error: failed to save expense: {e}", file=sys.stderr)
            return 1
    print(json.dumps(tx.to_json_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_summary(*, settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    try:
        summary = _ledger(settings).summary()
    except Exception as e:
        print(f"Error: failed to read ledger: {e}", file=sys.stderr)
        return 1
    print(f"Transactions: {summary.count}")
    print(f"Total spent:  R{summary.total_spent:.2f}")
    print(f"Total income: R{summary.total_income:.2f}")
    if summary.by_category:
        print("By category:")
        for cat, t in sorted(summary.by_category.items(), key=lambda kv: kv[1].total, reverse=True):
            print(f"  {cat}\t{t.count}\tR{t.total:.2f}")
    if summary.by_month:
        print("By month:")
        for month, t in summary.by_month.items():
            print(f"  {month}\t{t.count}\tR{t.total:.2f}")
    return 0


def cmd_descriptions_list(*, settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    for row in LearnedDescriptionStore.open(settings.learned_path).all_descriptions():
        flag = "manual" if row.is_manual else "learned"
        print(f"{row.store}\t{row.description}\t{row.category}\t{row.count}\t{flag}")
    return 0


def cmd_descriptions_create(
    store: str, description: str, category: str, *, settings: Settings | None = None
) -> int:
    settings = settings or Settings.from_env()
    learned = LearnedDescriptionStore.open(settings.learned_path)
    try:
        learned.create_manual_store(store, description, category)
    except DuplicateStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Created {store!r} -> {description} ({category})")
    return 0


def cmd_descriptions_delete(store: str, *, settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    if not LearnedDescriptionStore.open(settings.learned_path).delete_description(store):
        print(f"Error: no learned description for {store!r}", file=sys.stderr)
        return 1
    return 0


def cmd_descriptions_clear(*, settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    LearnedDescriptionStore.open(settings.learned_path).clear()
    return 0


def cmd_descriptions_stats(*, settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    stats = LearnedDescriptionStore.open(settings.learned_path).stats()
    print(f"Stores: {stats.total_stores} ({stats.manual_stores} manual, {stats.learned_stores} learned)")
    print(f"Transactions: {stats.total_transactions}")
    print(f"Average per store: {stats.average_transactions_per_store}")
    for cat, n in sorted(stats.categories.items()):
        print(f"  {cat}\t{n}")
    return 0


def cmd_failed(
    *,
    source: str | None = None,
    mark_processed: str | None = None,
    settings: Settings | None = None,
) -> int:
    settings = settings or Settings.from_env()
    queue = FailedParsingQueue.open(settings.failed_path)
    if mark_processed:
        if not queue.mark_processed(mark_processed):
            print(f"Error: no failed attempt with id {mark_processed!r}", file=sys.stderr)
            return 1
        return 0
    for a in queue.pending(source):
        excerpt = a.original_text.replace("\n", " ")[:80]
        print(f"{a.id}\t{a.source}\t{a.timestamp.isoformat()}\t{excerpt}")
    return 0


# ---- Typer-based console interface ------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Extract transactions from bank statement text and bank SMS/notifications. "
        "Loads settings from a local .env before running."
    ),
)
descriptions_app = typer.Typer(no_args_is_help=True, help="Manage learned store descriptions.")
app.add_typer(descriptions_app, name="descriptions")

# Module-level option objects shared by several commands. Inside ``Annotated``
# the first positional argument is the option name, not a default.
PATH_OPTION: OptionInfo = typer.Option(
    "--path",
    help="Path to a statement text or CSV file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
BANK_OPTION: OptionInfo = typer.Option("--bank-name", help="Bank name if not in the text.")
STORE_OPTION: OptionInfo = typer.Option("--store", help="Store name as it appears.")


@app.command("parse-statement")
def parse_statement_cmd(
    path: Annotated[Path, PATH_OPTION],
    bank_name: Annotated[str | None, BANK_OPTION] = None,
    fmt: Annotated[str, typer.Option("--format", help="json or tsv")] = "json",
    use_learned: Annotated[
        bool, typer.Option(help="Let learned categories refine dictionary results.")
    ] = True,
    queue_unparsed: Annotated[
        bool, typer.Option(help="Queue text with no transactions for manual entry.")
    ] = True,
) -> None:
    """Parse a statement and print account info plus transactions."""

    code = cmd_parse_statement(
        path,
        bank_name=bank_name,
        fmt=fmt,
        use_learned=use_learned,
        queue_unparsed=queue_unparsed,
    )
    raise typer.Exit(code)


@app.command("import-statement")
def import_statement_cmd(
    path: Annotated[Path, PATH_OPTION],
    bank_name: Annotated[str | None, BANK_OPTION] = None,
) -> None:
    """Parse a statement and insert new rows into the ledger."""

    raise typer.Exit(cmd_import_statement(path, bank_name=bank_name))


@app.command("parse-message")
def parse_message_cmd(
    text: Annotated[str, typer.Option("--text", help="Raw SMS or notification text.")],
    source: Annotated[str, typer.Option(help="sms or notification")] = "sms",
    persist: Annotated[bool, typer.Option(help="Add the expense to the ledger.")] = False,
) -> None:
    """Parse one bank SMS or notification."""

    raise typer.Exit(cmd_parse_message(text, source=source, persist=persist))


@app.command("summary")
def summary_cmd() -> None:
    """Print ledger totals by category and month."""

    raise typer.Exit(cmd_summary())


@app.command("failed")
def failed_cmd(
    source: Annotated[str | None, typer.Option(help="Only this source.")] = None,
    mark_processed: Annotated[
        str | None, typer.Option(help="Mark the attempt with this id as processed.")
    ] = None,
) -> None:
    """List pending unparsed texts, or mark one processed."""

    raise typer.Exit(cmd_failed(source=source, mark_processed=mark_processed))


@descriptions_app.command("list")
def descriptions_list_cmd() -> None:
    raise typer.Exit(cmd_descriptions_list())


@descriptions_app.command("create")
def descriptions_create_cmd(
    store: Annotated[str, STORE_OPTION],
    description: Annotated[str, typer.Option("--description")],
    category: Annotated[str, typer.Option("--category")],
) -> None:
    """Create a manual entry that automatic learning never overwrites."""

    raise typer.Exit(cmd_descriptions_create(store, description, category))


@descriptions_app.command("delete")
def descriptions_delete_cmd(store: Annotated[str, STORE_OPTION]) -> None:
    raise typer.Exit(cmd_descriptions_delete(store))


@descriptions_app.command("clear")
def descriptions_clear_cmd(
    yes: Annotated[bool, typer.Option("--yes", help="Confirm clearing every entry.")] = False,
) -> None:
    if not yes:
        print("Error: refusing to clear without --yes", file=sys.stderr)
        raise typer.Exit(1)
    raise typer.Exit(cmd_descriptions_clear())


@descriptions_app.command("stats")
def descriptions_stats_cmd() -> None:
    raise typer.Exit(cmd_descriptions_stats())


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
) -> None:
    """Load ``.env`` from the CWD (existing variables win) and set up logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(verbose=verbose)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
