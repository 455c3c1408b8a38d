"""Environment-driven settings.

All knobs are read from environment variables (the CLI loads a local ``.env``
first via ``python-dotenv``). Library code receives a :class:`Settings`
instance instead of reading the environment itself, so tests can build
isolated settings directly.

Variables
---------
``SE_DATA_DIR``
    Directory for the learned-description blob, the failed-parsing queue and
    the default SQLite ledger. Default: ``./.data`` under the CWD.
``SE_MERCHANTS_URL`` / ``SE_MERCHANTS_FILE``
    Remote endpoint or local JSON file serving the merchant dictionary. When
    both are unset the built-in defaults are used.
``SE_MERCHANTS_RELOAD_SECONDS``
    Maximum staleness of the cached dictionary (default 300).
``SE_AI_MODEL`` / ``SE_AI_TIMEOUT_SECONDS``
    Model name and request timeout for the optional AI parser.
``OPENAI_API_KEY``
    Enables the AI parser when present.
``DATABASE_URL``
    Ledger database; defaults to a SQLite file inside ``SE_DATA_DIR``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_RELOAD_SECONDS: float = 300.0
DEFAULT_AI_TIMEOUT_SECONDS: float = 15.0
DEFAULT_AI_MODEL: str = "gpt-4o-mini"

LEARNED_FILENAME = "learned_descriptions.json"
FAILED_FILENAME = "failed_parsing.json"
LEDGER_FILENAME = "ledger.db"


def _env_str(name: str) -> str | None:
    val = os.getenv(name)
    if val is None or not val.strip():
        return None
    return val.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _data_dir() -> Path:
    root = _env_str("SE_DATA_DIR")
    if root:
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".data").resolve()


@dataclass(frozen=True, slots=True)
class Settings:
    data_dir: Path
    merchants_url: str | None = None
    merchants_file: Path | None = None
    merchants_reload_seconds: float = DEFAULT_RELOAD_SECONDS
    ai_model: str = DEFAULT_AI_MODEL
    ai_timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS
    openai_api_key: str | None = None
    database_url: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        merchants_file = _env_str("SE_MERCHANTS_FILE")
        return cls(
            data_dir=_data_dir(),
            merchants_url=_env_str("SE_MERCHANTS_URL"),
            merchants_file=Path(merchants_file).expanduser() if merchants_file else None,
            merchants_reload_seconds=_env_float(
                "SE_MERCHANTS_RELOAD_SECONDS", DEFAULT_RELOAD_SECONDS
            ),
            ai_model=_env_str("SE_AI_MODEL") or DEFAULT_AI_MODEL,
            ai_timeout_seconds=_env_float("SE_AI_TIMEOUT_SECONDS", DEFAULT_AI_TIMEOUT_SECONDS),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            database_url=_env_str("DATABASE_URL"),
        )

    @property
    def learned_path(self) -> Path:
        return self.data_dir / LEARNED_FILENAME

    @property
    def failed_path(self) -> Path:
        return self.data_dir / FAILED_FILENAME

    def resolved_database_url(self) -> str:
        """Return ``database_url`` or a SQLite file URL inside ``data_dir``."""

        if self.database_url:
            return self.database_url
        return f"sqlite+pysqlite:///{self.data_dir / LEDGER_FILENAME}"


__all__ = ["Settings"]
