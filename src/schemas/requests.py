"""External request schemas for spot-check queries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schemas.internal.keys import ContentKey
from schemas.internal.spotcheck import (
    MismatchStatus,
    SpotCheckContentType,
    SpotCheckDataSource,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
)


class MismatchOrderBy(str, Enum):
    OBSERVED_DATETIME = "observed_datetime"
    FIRST_SEEN_DATETIME = "first_seen_datetime"
    REFERENCE_DATETIME = "reference_datetime"
    REPORT_DATETIME = "report_datetime"
    MISMATCH_TYPE = "mismatch_type"
    CONTENT_KEY = "content_key"


class OpenMismatchQuery(BaseModel):
    """Filter for currently open mismatches.

    ``reference_types`` defaults to every type matching the optional
    ``data_source`` / ``content_types`` filters.
    """

    reference_types: set[SpotCheckRefType] = Field(default_factory=set)
    data_source: SpotCheckDataSource | None = None
    content_types: set[SpotCheckContentType] | None = None
    observed_after: datetime | None = None
    mismatch_types: set[SpotCheckMismatchType] | None = None
    ignore_statuses: set[SpotCheckMismatchIgnore] = Field(
        default_factory=lambda: {SpotCheckMismatchIgnore.NOT_IGNORED}
    )
    statuses: set[MismatchStatus] | None = None
    keys: list[ContentKey] | None = None
    order_by: MismatchOrderBy = MismatchOrderBy.REFERENCE_DATETIME
    order: Literal["ASC", "DESC"] = "DESC"
    limit: int | None = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")

    @field_validator("observed_after")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("statuses")
    @classmethod
    def _open_statuses_only(
        cls, value: set[MismatchStatus] | None
    ) -> set[MismatchStatus] | None:
        if value and MismatchStatus.RESOLVED in value:
            raise ValueError("Open mismatch queries cannot filter on RESOLVED")
        return value or None

    @model_validator(mode="after")
    def _resolve_reference_types(self) -> "OpenMismatchQuery":
        candidates = set(self.reference_types) or set(SpotCheckRefType)
        if self.data_source is not None:
            candidates = {ref for ref in candidates if ref.data_source == self.data_source}
        if self.content_types:
            candidates = {ref for ref in candidates if ref.content_type in self.content_types}
        if not candidates:
            raise ValueError("No reference types match the query filters")
        self.reference_types = candidates
        if not self.ignore_statuses:
            raise ValueError("ignore_statuses must not be empty")
        return self


class ReportSummaryQuery(BaseModel):
    """Window over report run datetimes; defaults to the last six months."""

    reference_type: SpotCheckRefType | None = None
    start: datetime | None = None
    end: datetime | None = None
    order: Literal["ASC", "DESC"] = "DESC"
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _default_window(self) -> "ReportSummaryQuery":
        if self.end is None:
            self.end = datetime.now(timezone.utc)
        if self.start is None:
            self.start = self.end - timedelta(days=183)
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class EnqueueRequest(BaseModel):
    bill_id: str
    priority: int = 0

    model_config = ConfigDict(extra="forbid")


class IgnoreRequest(BaseModel):
    ignore_status: SpotCheckMismatchIgnore

    model_config = ConfigDict(extra="forbid")


class IssueRequest(BaseModel):
    issue_id: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class SchedulerToggle(BaseModel):
    enabled: bool

    model_config = ConfigDict(extra="forbid")


__all__ = [
    "EnqueueRequest",
    "IgnoreRequest",
    "IssueRequest",
    "MismatchOrderBy",
    "OpenMismatchQuery",
    "ReportSummaryQuery",
    "SchedulerToggle",
]
