from datetime import datetime, timedelta, timezone
from pathlib import Path

from persistence.sqlite_store import SqliteStore, from_iso, to_iso


class _NotesStore(SqliteStore):
    _schema = "CREATE TABLE IF NOT EXISTS note (id INTEGER PRIMARY KEY, body TEXT NOT NULL);"

    def add(self, body: str) -> None:
        with self._transaction() as conn:
            conn.execute("INSERT INTO note (body) VALUES (?)", (body,))

    def bodies(self) -> list[str]:
        return [row["body"] for row in self._fetch_all("SELECT body FROM note ORDER BY id")]


def test_schema_is_created_once(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "notes.sqlite"
    _NotesStore(path).add("first")

    reopened = _NotesStore(path)
    reopened.add("second")

    assert reopened.path == path
    assert reopened.bodies() == ["first", "second"]


def test_iso_text_orders_like_time() -> None:
    plus_five = timezone(timedelta(hours=5))
    early = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
    late = datetime(2024, 3, 4, 12, 0, 0, 1, tzinfo=plus_five)

    assert to_iso(early) == "2024-03-04T09:00:00.000000+00:00"
    assert to_iso(early) > to_iso(late)
    assert from_iso(to_iso(late)) == late
    assert to_iso(datetime(2024, 3, 4, 9, 0)) == to_iso(early)
