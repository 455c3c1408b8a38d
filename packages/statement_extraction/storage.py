"""File helpers shared by the JSON-backed stores.

Writes target ``<name>.tmp`` first and then ``os.replace`` into place, so a
crash mid-write never leaves a truncated blob behind. Reads return ``None``
for a missing file; every other I/O error propagates to the caller.
"""

from __future__ import annotations

import contextlib
import os
from pathlib import Path


def atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


def read_text_or_none(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


__all__ = ["atomic_write_text", "read_text_or_none"]
