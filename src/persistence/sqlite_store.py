"""SQLite plumbing shared by the reference and report stores."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator


class SqliteStore:
    """Owns one SQLite file; subclasses contribute their schema."""

    _schema = ""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self._transaction() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(self._schema)

    def _fetch_one(self, query: str, params: tuple[object, ...] = ()) -> sqlite3.Row | None:
        with self._transaction() as conn:
            cur = conn.execute(query, params)
            return cur.fetchone()

    def _fetch_all(self, query: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            cur = conn.execute(query, params)
            return cur.fetchall()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Fixed-width UTC ISO text, so lexical order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


__all__ = ["SqliteStore", "from_iso", "to_iso", "utc_now"]
