"""Lightweight persistence records."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from schemas.internal.keys import BaseBillId
from schemas.internal.spotcheck import (
    Key,
    MismatchState,
    MismatchStatus,
    ReferenceId,
    ReportId,
    SpotCheckContentType,
    SpotCheckDataSource,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
    derive_status,
)


@dataclass(frozen=True)
class ScrapeFile:
    file_name: str
    file_path: Path
    staged_datetime: datetime
    archived: bool = False
    pending_processing: bool = True


@dataclass(frozen=True)
class ScrapeQueueEntry:
    key: BaseBillId
    priority: int
    added_datetime: datetime


@dataclass(frozen=True)
class DeadLetterEntry:
    key: BaseBillId
    priority: int
    attempts: int
    error: str
    failed_datetime: datetime


MismatchIdentity = tuple[SpotCheckRefType, Key, SpotCheckMismatchType]


@dataclass(frozen=True)
class MismatchRecord:
    """Denormalized, persisted form of one mismatch in one report."""

    report_id: ReportId
    reference_id: ReferenceId
    key: Key
    mismatch_type: SpotCheckMismatchType
    state: MismatchState
    ignore_status: SpotCheckMismatchIgnore
    first_seen_datetime: datetime
    observed_datetime: datetime
    report_datetime: datetime
    observed_data: str = ""
    reference_data: str = ""
    issue_ids: tuple[str, ...] = field(default_factory=tuple)
    mismatch_id: int | None = None

    @property
    def reference_type(self) -> SpotCheckRefType:
        return self.reference_id.reference_type

    @property
    def data_source(self) -> SpotCheckDataSource:
        return self.reference_type.data_source

    @property
    def content_type(self) -> SpotCheckContentType:
        return self.reference_type.content_type

    @property
    def identity(self) -> MismatchIdentity:
        return (self.reference_type, self.key, self.mismatch_type)

    @property
    def status(self) -> MismatchStatus:
        return derive_status(self.state, self.first_seen_datetime, self.observed_datetime)

    @property
    def is_ignored(self) -> bool:
        return self.ignore_status != SpotCheckMismatchIgnore.NOT_IGNORED

    def copy(self, **changes: object) -> "MismatchRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class ReportSummaryRecord:
    report_id: ReportId
    notes: str | None
    checked_key_count: int
    observation_count: int
    state_counts: dict[str, int]
    status_counts: dict[str, int]
    type_counts: dict[str, int]
    ignored_count: int


@dataclass(frozen=True)
class PaginatedList:
    items: list
    total: int
    limit: int | None
    offset: int


__all__ = [
    "DeadLetterEntry",
    "MismatchIdentity",
    "MismatchRecord",
    "PaginatedList",
    "ReportSummaryRecord",
    "ScrapeFile",
    "ScrapeQueueEntry",
]
