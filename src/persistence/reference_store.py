"""Reference store: scraped bill files on disk plus their index and the scrape queue."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable

from persistence.models import DeadLetterEntry, PaginatedList, ScrapeFile, ScrapeQueueEntry
from persistence.sqlite_store import SqliteStore, from_iso, to_iso, utc_now
from schemas.internal.keys import BaseBillId
from spotcheck.errors import DuplicateEnqueue, QueueEmpty

logger = logging.getLogger(__name__)

SCRAPE_TIME_FORMAT = "%Y%m%dT%H%M%S"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS bill_scrape_file (
    file_name TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    staged_datetime TEXT NOT NULL,
    archived INTEGER NOT NULL DEFAULT 0,
    pending_processing INTEGER NOT NULL DEFAULT 1
);
CREATE INDEX IF NOT EXISTS idx_bill_scrape_file_incoming
    ON bill_scrape_file(archived, pending_processing, staged_datetime);

CREATE TABLE IF NOT EXISTS bill_scrape_queue (
    print_no TEXT NOT NULL,
    session_year INTEGER NOT NULL,
    priority INTEGER NOT NULL,
    added_time TEXT NOT NULL,
    PRIMARY KEY(print_no, session_year)
);
CREATE INDEX IF NOT EXISTS idx_bill_scrape_queue_order
    ON bill_scrape_queue(priority, added_time);

CREATE TABLE IF NOT EXISTS bill_scrape_dead_letter (
    print_no TEXT NOT NULL,
    session_year INTEGER NOT NULL,
    priority INTEGER NOT NULL,
    attempts INTEGER NOT NULL,
    error TEXT NOT NULL,
    failed_time TEXT NOT NULL,
    PRIMARY KEY(print_no, session_year)
);
"""


def scrape_file_name(key: BaseBillId, scraped_at: datetime) -> str:
    return f"{key.session}-{key.print_no}-{scraped_at.strftime(SCRAPE_TIME_FORMAT)}.html"


class ReferenceStore(SqliteStore):
    """Scrape files live on disk; SQLite rows are the authority on their state.

    Rows are written only after the file operation they describe has
    completed, so after a crash ``list_incoming`` still reflects the work
    left to do.
    """

    _schema = _SCHEMA

    def __init__(
        self,
        path: str | Path,
        *,
        staging_dir: str | Path,
        archive_dir: str | Path,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._staging_dir = Path(staging_dir)
        self._archive_dir = Path(archive_dir)
        self._clock = clock
        self._move_locks: dict[Path, threading.Lock] = {}
        self._move_locks_guard = threading.Lock()
        super().__init__(path)

    @classmethod
    def from_settings(cls, settings) -> "ReferenceStore":
        return cls(
            settings.spotcheck_db_path,
            staging_dir=settings.scrape_staging_bill_dir,
            archive_dir=settings.scrape_archive_bill_dir,
        )

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    @property
    def archive_dir(self) -> Path:
        return self._archive_dir

    # Scrape files

    def save_content(
        self, key: BaseBillId, content: bytes, scraped_at: datetime | None = None
    ) -> ScrapeFile:
        scraped_at = scraped_at or self._clock()
        file_name = scrape_file_name(key, scraped_at)
        self._staging_dir.mkdir(parents=True, exist_ok=True)
        target = self._staging_dir / file_name
        partial = target.with_name(target.name + ".part")
        partial.write_bytes(content)
        os.replace(partial, target)

        scrape_file = ScrapeFile(
            file_name=file_name,
            file_path=target,
            staged_datetime=scraped_at,
            archived=False,
            pending_processing=True,
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO bill_scrape_file (
                    file_name, file_path, staged_datetime, archived, pending_processing
                ) VALUES (?, ?, ?, 0, 1)
                """,
                (file_name, str(target), to_iso(scraped_at)),
            )
        logger.info("Saved scrape of %s to %s", key, target)
        return scrape_file

    def list_incoming(self) -> list[ScrapeFile]:
        rows = self._fetch_all(
            """
            SELECT * FROM bill_scrape_file
             WHERE archived = 0 AND pending_processing = 1
             ORDER BY staged_datetime ASC, file_name ASC
            """
        )
        return [_row_to_file(row) for row in rows]

    def list_pending(self) -> list[ScrapeFile]:
        rows = self._fetch_all(
            """
            SELECT * FROM bill_scrape_file
             WHERE pending_processing = 1
             ORDER BY staged_datetime ASC, file_name ASC
            """
        )
        return [_row_to_file(row) for row in rows]

    def get_file(self, file_name: str) -> ScrapeFile | None:
        row = self._fetch_one("SELECT * FROM bill_scrape_file WHERE file_name = ?", (file_name,))
        return _row_to_file(row) if row else None

    def archive(self, scrape_file: ScrapeFile) -> ScrapeFile:
        destination = self._archive_dir / scrape_file.file_name
        with self._move_lock(destination):
            self._archive_dir.mkdir(parents=True, exist_ok=True)
            if destination.exists():
                destination.unlink()
            shutil.move(str(scrape_file.file_path), str(destination))
            archived = ScrapeFile(
                file_name=scrape_file.file_name,
                file_path=destination,
                staged_datetime=scrape_file.staged_datetime,
                archived=True,
                pending_processing=False,
            )
            self.update_file_flags(archived)
        return archived

    def update_file_flags(self, scrape_file: ScrapeFile) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE bill_scrape_file
                   SET file_path = ?, archived = ?, pending_processing = ?
                 WHERE file_name = ?
                """,
                (
                    str(scrape_file.file_path),
                    int(scrape_file.archived),
                    int(scrape_file.pending_processing),
                    scrape_file.file_name,
                ),
            )

    # Scrape queue

    def enqueue(self, key: BaseBillId, priority: int) -> ScrapeQueueEntry:
        entry = ScrapeQueueEntry(key=key, priority=priority, added_datetime=self._clock())
        try:
            self._insert_queue_row(entry)
        except DuplicateEnqueue:
            with self._transaction() as conn:
                conn.execute(
                    """
                    UPDATE bill_scrape_queue SET priority = ?, added_time = ?
                     WHERE print_no = ? AND session_year = ?
                    """,
                    (entry.priority, to_iso(entry.added_datetime), key.print_no, key.session),
                )
        return entry

    def _insert_queue_row(self, entry: ScrapeQueueEntry) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO bill_scrape_queue (print_no, session_year, priority, added_time)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        entry.key.print_no,
                        entry.key.session,
                        entry.priority,
                        to_iso(entry.added_datetime),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateEnqueue(str(entry.key)) from exc

    def dequeue_head(self) -> ScrapeQueueEntry:
        row = self._fetch_one(
            """
            SELECT * FROM bill_scrape_queue
             ORDER BY priority DESC, added_time ASC
             LIMIT 1
            """
        )
        if row is None:
            raise QueueEmpty("The scrape queue is empty")
        return _row_to_queue_entry(row)

    def remove(self, key: BaseBillId, added_datetime: datetime | None = None) -> bool:
        """Delete the queue entry for ``key``.

        With ``added_datetime``, the entry is deleted only if it was not
        re-enqueued since; returns whether a row was deleted.
        """
        sql = "DELETE FROM bill_scrape_queue WHERE print_no = ? AND session_year = ?"
        params: tuple = (key.print_no, key.session)
        if added_datetime is not None:
            sql += " AND added_time = ?"
            params += (to_iso(added_datetime),)
        with self._transaction() as conn:
            return conn.execute(sql, params).rowcount > 0

    def list_queue(
        self, *, limit: int | None = None, offset: int = 0, order: str = "DESC"
    ) -> PaginatedList:
        direction = _direction(order)
        opposite = "ASC" if direction == "DESC" else "DESC"
        total_row = self._fetch_one("SELECT COUNT(*) AS total FROM bill_scrape_queue")
        rows = self._fetch_all(
            f"""
            SELECT * FROM bill_scrape_queue
             ORDER BY priority {direction}, added_time {opposite}
             LIMIT ? OFFSET ?
            """,
            (limit if limit is not None else -1, offset),
        )
        return PaginatedList(
            items=[_row_to_queue_entry(row) for row in rows],
            total=int(total_row["total"]) if total_row else 0,
            limit=limit,
            offset=offset,
        )

    def dead_letter(self, key: BaseBillId, *, attempts: int, error: str) -> DeadLetterEntry:
        failed_at = self._clock()
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT priority FROM bill_scrape_queue WHERE print_no = ? AND session_year = ?",
                (key.print_no, key.session),
            ).fetchone()
            priority = int(row["priority"]) if row else 0
            conn.execute(
                "DELETE FROM bill_scrape_queue WHERE print_no = ? AND session_year = ?",
                (key.print_no, key.session),
            )
            conn.execute(
                """
                INSERT OR REPLACE INTO bill_scrape_dead_letter (
                    print_no, session_year, priority, attempts, error, failed_time
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (key.print_no, key.session, priority, attempts, error, to_iso(failed_at)),
            )
        logger.warning("Dead-lettered scrape of %s after %d attempts: %s", key, attempts, error)
        return DeadLetterEntry(
            key=key,
            priority=priority,
            attempts=attempts,
            error=error,
            failed_datetime=failed_at,
        )

    def list_dead_letters(self) -> list[DeadLetterEntry]:
        rows = self._fetch_all(
            "SELECT * FROM bill_scrape_dead_letter ORDER BY failed_time DESC"
        )
        return [
            DeadLetterEntry(
                key=BaseBillId(print_no=row["print_no"], session=row["session_year"]),
                priority=row["priority"],
                attempts=row["attempts"],
                error=row["error"],
                failed_datetime=from_iso(row["failed_time"]),
            )
            for row in rows
        ]

    def _move_lock(self, destination: Path) -> threading.Lock:
        with self._move_locks_guard:
            return self._move_locks.setdefault(destination, threading.Lock())


def _direction(order: str) -> str:
    direction = order.strip().upper()
    if direction not in {"ASC", "DESC"}:
        raise ValueError(f"Invalid sort order: {order!r}")
    return direction


def _row_to_file(row: sqlite3.Row) -> ScrapeFile:
    return ScrapeFile(
        file_name=row["file_name"],
        file_path=Path(row["file_path"]),
        staged_datetime=from_iso(row["staged_datetime"]),
        archived=bool(row["archived"]),
        pending_processing=bool(row["pending_processing"]),
    )


def _row_to_queue_entry(row: sqlite3.Row) -> ScrapeQueueEntry:
    return ScrapeQueueEntry(
        key=BaseBillId(print_no=row["print_no"], session=row["session_year"]),
        priority=row["priority"],
        added_datetime=from_iso(row["added_time"]),
    )


__all__ = ["ReferenceStore", "SCRAPE_TIME_FORMAT", "scrape_file_name"]
