"""SQLAlchemy engine/session helpers, one engine per database URL.

Usage
-----
from db.client import init_schema, session_scope

init_schema(database_url=url)
with session_scope(database_url=url) as s:
    s.add(...)

The URL comes from the ``database_url`` argument or ``DATABASE_URL``.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models.expenses import Base

_ENGINES: dict[str, tuple[Engine, sessionmaker[Session]]] = {}
_LOCK = threading.Lock()


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _bind(url: str) -> tuple[Engine, sessionmaker[Session]]:
    with _LOCK:
        bound = _ENGINES.get(url)
        if bound is None:
            engine = create_engine(url, pool_pre_ping=True)
            maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
            bound = _ENGINES[url] = (engine, maker)
        return bound


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine for the URL, creating it on first use."""

    return _bind(_database_url(database_url))[0]


def get_session(*, database_url: str | None = None) -> Session:
    return _bind(_database_url(database_url))[1]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(*, database_url: str | None = None) -> None:
    """Create any missing tables."""

    Base.metadata.create_all(get_engine(database_url=database_url))


def dispose_engines() -> None:
    """Dispose every cached engine (test teardown, process shutdown)."""

    with _LOCK:
        bound = list(_ENGINES.values())
        _ENGINES.clear()
    for engine, _ in bound:
        engine.dispose()


__all__ = [
    "dispose_engines",
    "get_engine",
    "get_session",
    "init_schema",
    "session_scope",
]
