"""Pytest configuration for test isolation.

The package keeps its learned descriptions, failed-parsing queue and default
SQLite ledger under ``SE_DATA_DIR`` (``./.data`` when unset). Tests that run
in the same working tree would otherwise share those files, and a developer's
``.env`` could switch on the AI parser or a remote merchant source.

An autouse fixture points the data dir at the test's own temporary directory
and clears every variable that reaches outside the process.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines

_OUTWARD_ENV = (
    "OPENAI_API_KEY",
    "SE_MERCHANTS_URL",
    "SE_MERCHANTS_FILE",
    "SE_AI_MODEL",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("SE_DATA_DIR", os.fspath(data_root))
    for name in _OUTWARD_ENV:
        monkeypatch.delenv(name, raising=False)
    yield data_root
    dispose_engines()


@pytest.fixture
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir
