"""Persistence and collaborator protocol contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Literal, Protocol

from persistence.models import (
    DeadLetterEntry,
    MismatchIdentity,
    MismatchRecord,
    PaginatedList,
    ScrapeFile,
    ScrapeQueueEntry,
)
from schemas.internal.keys import BaseBillId
from schemas.internal.references import SenateSiteDump
from schemas.internal.spotcheck import (
    Key,
    Report,
    ReportId,
    SpotCheckDataSource,
    SpotCheckMismatchIgnore,
    SpotCheckRefType,
)

SortOrder = Literal["ASC", "DESC"]


class ContentDataService(Protocol):
    """Read access to the system's own canonical content."""

    def get_content(self, key: Key) -> Any | None: ...

    def list_keys(self, session: int, page: int) -> list[Key]: ...

    def get_publish_status(self, key: Key) -> bool: ...


class Scraper(Protocol):
    def fetch(self, key: BaseBillId) -> bytes: ...


class DumpSource(Protocol):
    def get_pending_dumps(self, ref_type: SpotCheckRefType) -> list[SenateSiteDump]: ...

    def read_fragment(self, fragment: Any) -> dict[str, Any]: ...

    def set_processed(self, dump: SenateSiteDump) -> None: ...


class ScrapeFileStore(Protocol):
    def save_content(
        self, key: BaseBillId, content: bytes, scraped_at: datetime | None = None
    ) -> ScrapeFile: ...

    def list_incoming(self) -> list[ScrapeFile]: ...

    def archive(self, scrape_file: ScrapeFile) -> ScrapeFile: ...

    def update_file_flags(self, scrape_file: ScrapeFile) -> None: ...


class ScrapeQueue(Protocol):
    def enqueue(self, key: BaseBillId, priority: int) -> ScrapeQueueEntry: ...

    def dequeue_head(self) -> ScrapeQueueEntry: ...

    def remove(self, key: BaseBillId, added_datetime: datetime | None = None) -> bool: ...

    def list_queue(
        self, *, limit: int | None = None, offset: int = 0, order: SortOrder = "DESC"
    ) -> PaginatedList: ...

    def dead_letter(self, key: BaseBillId, *, attempts: int, error: str) -> DeadLetterEntry: ...


class ReportRepository(Protocol):
    def save_report(self, report: Report, records: Iterable[MismatchRecord]) -> None: ...

    def get_report(self, report_id: ReportId) -> Report: ...

    def get_current_mismatches(
        self, data_source: SpotCheckDataSource
    ) -> list[MismatchRecord]: ...

    def get_mismatch_history(
        self, data_source: SpotCheckDataSource, keys: Iterable[Key]
    ) -> dict[MismatchIdentity, list[MismatchRecord]]: ...

    def set_ignore_status(self, mismatch_id: int, status: SpotCheckMismatchIgnore) -> None: ...

    def add_issue_id(self, mismatch_id: int, issue_id: str) -> None: ...

    def remove_issue_id(self, mismatch_id: int, issue_id: str) -> None: ...

    def delete_report(self, report_id: ReportId) -> None: ...


__all__ = [
    "ContentDataService",
    "DumpSource",
    "ReportRepository",
    "ScrapeFileStore",
    "ScrapeQueue",
    "Scraper",
    "SortOrder",
]
