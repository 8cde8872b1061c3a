"""External response schemas for the CLI and admin API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field

from persistence.models import (
    DeadLetterEntry,
    MismatchRecord,
    PaginatedList,
    ReportSummaryRecord,
    ScrapeQueueEntry,
)
from schemas.internal.spotcheck import (
    Key,
    MismatchState,
    MismatchStatus,
    Observation,
    Report,
    SpotCheckContentType,
    SpotCheckDataSource,
    SpotCheckMismatch,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
)


class KeyView(BaseModel):
    kind: str
    text: str
    key_map: dict[str, str]

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_key(cls, key: Key) -> "KeyView":
        return cls(kind=key.kind, text=str(key), key_map=key.to_key_map())


class MismatchView(BaseModel):
    mismatch_id: int | None = None
    reference_type: SpotCheckRefType
    data_source: SpotCheckDataSource
    content_type: SpotCheckContentType
    reference_datetime: datetime
    report_datetime: datetime
    key: KeyView
    mismatch_type: SpotCheckMismatchType
    state: MismatchState
    status: MismatchStatus
    ignore_status: SpotCheckMismatchIgnore
    issue_ids: List[str] = Field(default_factory=list)
    first_seen_datetime: datetime
    observed_datetime: datetime
    observed_data: str = ""
    reference_data: str = ""

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: MismatchRecord) -> "MismatchView":
        return cls(
            mismatch_id=record.mismatch_id,
            reference_type=record.reference_type,
            data_source=record.data_source,
            content_type=record.content_type,
            reference_datetime=record.reference_id.reference_datetime,
            report_datetime=record.report_datetime,
            key=KeyView.from_key(record.key),
            mismatch_type=record.mismatch_type,
            state=record.state,
            status=record.status,
            ignore_status=record.ignore_status,
            issue_ids=list(record.issue_ids),
            first_seen_datetime=record.first_seen_datetime,
            observed_datetime=record.observed_datetime,
            observed_data=record.observed_data,
            reference_data=record.reference_data,
        )


class ReportSummaryView(BaseModel):
    reference_type: SpotCheckRefType
    reference_datetime: datetime
    report_datetime: datetime
    notes: str | None = None
    checked_key_count: int
    observation_count: int
    state_counts: dict[str, int] = Field(default_factory=dict)
    status_counts: dict[str, int] = Field(default_factory=dict)
    type_counts: dict[str, int] = Field(default_factory=dict)
    ignored_count: int = 0

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: ReportSummaryRecord) -> "ReportSummaryView":
        return cls(
            reference_type=record.report_id.reference_type,
            reference_datetime=record.report_id.reference_datetime,
            report_datetime=record.report_id.report_datetime,
            notes=record.notes,
            checked_key_count=record.checked_key_count,
            observation_count=record.observation_count,
            state_counts=dict(record.state_counts),
            status_counts=dict(record.status_counts),
            type_counts=dict(record.type_counts),
            ignored_count=record.ignored_count,
        )


class ObservationView(BaseModel):
    key: KeyView
    observed_datetime: datetime
    mismatches: List[SpotCheckMismatch] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_observation(cls, observation: Observation) -> "ObservationView":
        return cls(
            key=KeyView.from_key(observation.key),
            observed_datetime=observation.observed_datetime,
            mismatches=sorted(
                observation.mismatches.values(), key=lambda mismatch: mismatch.mismatch_type.value
            ),
        )


class ReportView(BaseModel):
    reference_type: SpotCheckRefType
    reference_datetime: datetime
    report_datetime: datetime
    notes: str | None = None
    checked_key_count: int
    mismatch_count: int
    observations: List[ObservationView] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_report(cls, report: Report, *, mismatches_only: bool = False) -> "ReportView":
        observations = sorted(report.observations.values(), key=lambda item: str(item.key))
        if mismatches_only:
            observations = [item for item in observations if item.mismatches]
        return cls(
            reference_type=report.reference_type,
            reference_datetime=report.reference_datetime,
            report_datetime=report.report_datetime,
            notes=report.notes,
            checked_key_count=len(report.checked_keys),
            mismatch_count=report.mismatch_count(),
            observations=[ObservationView.from_observation(item) for item in observations],
        )


class QueueEntryView(BaseModel):
    bill_id: str
    priority: int
    added_datetime: datetime

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_entry(cls, entry: ScrapeQueueEntry) -> "QueueEntryView":
        return cls(
            bill_id=str(entry.key), priority=entry.priority, added_datetime=entry.added_datetime
        )


class DeadLetterView(BaseModel):
    bill_id: str
    priority: int
    attempts: int
    error: str
    failed_datetime: datetime

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_entry(cls, entry: DeadLetterEntry) -> "DeadLetterView":
        return cls(
            bill_id=str(entry.key),
            priority=entry.priority,
            attempts=entry.attempts,
            error=entry.error,
            failed_datetime=entry.failed_datetime,
        )


class PaginatedResponse(BaseModel):
    items: List[Any] = Field(default_factory=list)
    total: int
    limit: int | None = None
    offset: int = 0

    @classmethod
    def from_list(cls, page: PaginatedList, convert) -> "PaginatedResponse":
        return cls(
            items=[convert(item) for item in page.items],
            total=page.total,
            limit=page.limit,
            offset=page.offset,
        )


class OpenMismatchSummaryView(BaseModel):
    reference_type: SpotCheckRefType
    mismatch_type: SpotCheckMismatchType
    status: MismatchStatus
    ignored: bool
    count: int

    model_config = ConfigDict(extra="forbid")


class ReferenceTypeStatus(BaseModel):
    reference_type: SpotCheckRefType
    running: bool = False
    last_run: datetime | None = None


class SchedulerStatus(BaseModel):
    enabled: bool
    interval_sec: int
    reference_types: List[ReferenceTypeStatus] = Field(default_factory=list)


class RunResultView(BaseModel):
    reference_type: SpotCheckRefType
    succeeded: bool
    reference_datetime: datetime | None = None
    report_datetime: datetime | None = None
    observation_count: int = 0
    mismatch_count: int = 0
    open_records: int = 0
    closed_records: int = 0
    error: str | None = None

    @classmethod
    def from_result(cls, result) -> "RunResultView":
        report = result.report
        if report is None:
            return cls(reference_type=result.reference_type, succeeded=False, error=result.error)
        reconciliation = result.reconciliation
        return cls(
            reference_type=result.reference_type,
            succeeded=True,
            reference_datetime=report.reference_datetime,
            report_datetime=report.report_datetime,
            observation_count=len(report.observations),
            mismatch_count=report.mismatch_count(),
            open_records=len(reconciliation.report_mismatches) if reconciliation else 0,
            closed_records=len(reconciliation.closed_mismatches) if reconciliation else 0,
        )


class DispatchView(BaseModel):
    bill_id: str
    status: str
    attempts: int = 0
    file_name: str | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome) -> "DispatchView":
        return cls(
            bill_id=str(outcome.key),
            status=outcome.status,
            attempts=outcome.attempts,
            file_name=outcome.scrape_file.file_name if outcome.scrape_file else None,
            error=outcome.error,
        )


__all__ = [
    "DeadLetterView",
    "DispatchView",
    "KeyView",
    "MismatchView",
    "ObservationView",
    "OpenMismatchSummaryView",
    "PaginatedResponse",
    "QueueEntryView",
    "ReferenceTypeStatus",
    "ReportSummaryView",
    "ReportView",
    "RunResultView",
    "SchedulerStatus",
]
