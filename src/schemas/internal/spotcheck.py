"""Spot-check domain types: reference types, mismatches, observations, reports."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId
from spotcheck.errors import InvalidMismatchForReferenceType


Key = BillId | BaseBillId | CalendarEntryListId


class SpotCheckDataSource(str, Enum):
    LBDC = "LBDC"
    NYSENATE = "NYSENATE"
    OPENLEG = "OPENLEG"


class SpotCheckContentType(str, Enum):
    BILL = "BILL"
    CALENDAR = "CALENDAR"


class SpotCheckMismatchType(str, Enum):
    REFERENCE_DATA_MISSING = "REFERENCE_DATA_MISSING"
    OBSERVE_DATA_MISSING = "OBSERVE_DATA_MISSING"

    BILL_ACTIVE_AMENDMENT = "BILL_ACTIVE_AMENDMENT"
    BILL_PUBLISH_STATUS = "BILL_PUBLISH_STATUS"
    BILL_TITLE = "BILL_TITLE"
    BILL_SUMMARY = "BILL_SUMMARY"
    BILL_SPONSOR = "BILL_SPONSOR"
    BILL_COSPONSOR = "BILL_COSPONSOR"
    BILL_MULTISPONSOR = "BILL_MULTISPONSOR"
    BILL_LAW_SECTION = "BILL_LAW_SECTION"
    BILL_LAW_CODE = "BILL_LAW_CODE"
    BILL_ACT_CLAUSE = "BILL_ACT_CLAUSE"
    BILL_SAME_AS = "BILL_SAME_AS"
    BILL_ACTION = "BILL_ACTION"
    BILL_LAST_STATUS = "BILL_LAST_STATUS"
    BILL_VOTE_ROLL = "BILL_VOTE_ROLL"
    BILL_TEXT_CONTENT = "BILL_TEXT_CONTENT"
    BILL_MEMO = "BILL_MEMO"
    BILL_SCRAPE_VOTE = "BILL_SCRAPE_VOTE"

    CALENDAR_CAL_DATE = "CALENDAR_CAL_DATE"
    CALENDAR_RELEASE_DATETIME = "CALENDAR_RELEASE_DATETIME"
    CALENDAR_ENTRY_LIST = "CALENDAR_ENTRY_LIST"


class MismatchState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SpotCheckMismatchIgnore(str, Enum):
    NOT_IGNORED = "NOT_IGNORED"
    IGNORE_ONCE = "IGNORE_ONCE"
    IGNORE_PERMANENTLY = "IGNORE_PERMANENTLY"


class MismatchStatus(str, Enum):
    """Operator-facing status derived from state and first-seen dating."""

    NEW = "NEW"
    EXISTING = "EXISTING"
    RESOLVED = "RESOLVED"


_PRESENCE = (
    SpotCheckMismatchType.REFERENCE_DATA_MISSING,
    SpotCheckMismatchType.OBSERVE_DATA_MISSING,
)


class _RefTypeInfo(NamedTuple):
    ref_name: str
    data_source: SpotCheckDataSource
    content_type: SpotCheckContentType
    key_kind: str
    checked_types: frozenset[SpotCheckMismatchType]


def _types(*names: str) -> frozenset[SpotCheckMismatchType]:
    return frozenset(_PRESENCE) | {SpotCheckMismatchType(name) for name in names}


class SpotCheckRefType(str, Enum):
    LBDC_DAYBREAK = "LBDC_DAYBREAK"
    LBDC_SCRAPED_BILL = "LBDC_SCRAPED_BILL"
    SENATE_SITE_BILLS = "SENATE_SITE_BILLS"
    SENATE_SITE_CALENDAR = "SENATE_SITE_CALENDAR"
    OPENLEG_BILL = "OPENLEG_BILL"

    @property
    def ref_name(self) -> str:
        return _REF_TYPE_INFO[self].ref_name

    @property
    def data_source(self) -> SpotCheckDataSource:
        return _REF_TYPE_INFO[self].data_source

    @property
    def content_type(self) -> SpotCheckContentType:
        return _REF_TYPE_INFO[self].content_type

    @property
    def key_kind(self) -> str:
        return _REF_TYPE_INFO[self].key_kind

    def checked_mismatch_types(self) -> frozenset[SpotCheckMismatchType]:
        return _REF_TYPE_INFO[self].checked_types

    @classmethod
    def from_name(cls, value: str) -> "SpotCheckRefType":
        """Resolve either an enum name (``SENATE_SITE_BILLS``) or a ref name (``senate-site-bills``)."""
        text = value.strip()
        for ref_type in cls:
            if text.upper() == ref_type.value or text.lower() == ref_type.ref_name:
                return ref_type
        raise ValueError(f"Unknown reference type: {value!r}")

    @classmethod
    def for_data_source(cls, data_source: SpotCheckDataSource) -> list["SpotCheckRefType"]:
        return [ref_type for ref_type in cls if ref_type.data_source == data_source]


_REF_TYPE_INFO: dict[SpotCheckRefType, _RefTypeInfo] = {
    SpotCheckRefType.LBDC_DAYBREAK: _RefTypeInfo(
        "daybreak",
        SpotCheckDataSource.LBDC,
        SpotCheckContentType.BILL,
        "base_bill",
        _types(
            "BILL_ACTIVE_AMENDMENT",
            "BILL_PUBLISH_STATUS",
            "BILL_TITLE",
            "BILL_SPONSOR",
            "BILL_COSPONSOR",
            "BILL_MULTISPONSOR",
            "BILL_LAW_SECTION",
            "BILL_SAME_AS",
            "BILL_ACTION",
        ),
    ),
    SpotCheckRefType.LBDC_SCRAPED_BILL: _RefTypeInfo(
        "scraped-bill",
        SpotCheckDataSource.LBDC,
        SpotCheckContentType.BILL,
        "base_bill",
        _types("BILL_TEXT_CONTENT", "BILL_MEMO", "BILL_SCRAPE_VOTE"),
    ),
    SpotCheckRefType.SENATE_SITE_BILLS: _RefTypeInfo(
        "senate-site-bills",
        SpotCheckDataSource.NYSENATE,
        SpotCheckContentType.BILL,
        "bill",
        _types(
            "BILL_ACTIVE_AMENDMENT",
            "BILL_PUBLISH_STATUS",
            "BILL_TITLE",
            "BILL_SUMMARY",
            "BILL_SPONSOR",
            "BILL_COSPONSOR",
            "BILL_MULTISPONSOR",
            "BILL_LAW_SECTION",
            "BILL_LAW_CODE",
            "BILL_ACT_CLAUSE",
            "BILL_SAME_AS",
            "BILL_ACTION",
            "BILL_LAST_STATUS",
            "BILL_VOTE_ROLL",
            "BILL_TEXT_CONTENT",
            "BILL_MEMO",
        ),
    ),
    SpotCheckRefType.SENATE_SITE_CALENDAR: _RefTypeInfo(
        "senate-site-calendar",
        SpotCheckDataSource.NYSENATE,
        SpotCheckContentType.CALENDAR,
        "calendar_entry_list",
        _types(
            "CALENDAR_CAL_DATE",
            "CALENDAR_RELEASE_DATETIME",
            "CALENDAR_ENTRY_LIST",
        ),
    ),
    SpotCheckRefType.OPENLEG_BILL: _RefTypeInfo(
        "openleg-bill",
        SpotCheckDataSource.OPENLEG,
        SpotCheckContentType.BILL,
        "base_bill",
        _types(
            "BILL_ACTIVE_AMENDMENT",
            "BILL_PUBLISH_STATUS",
            "BILL_TITLE",
            "BILL_SUMMARY",
            "BILL_SPONSOR",
            "BILL_COSPONSOR",
            "BILL_MULTISPONSOR",
            "BILL_LAW_SECTION",
            "BILL_LAW_CODE",
            "BILL_ACT_CLAUSE",
            "BILL_SAME_AS",
            "BILL_ACTION",
            "BILL_LAST_STATUS",
            "BILL_TEXT_CONTENT",
            "BILL_MEMO",
        ),
    ),
}


class ReferenceId(BaseModel):
    reference_type: SpotCheckRefType
    reference_datetime: datetime

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReportId(BaseModel):
    reference_type: SpotCheckRefType
    reference_datetime: datetime
    report_datetime: datetime

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def reference_id(self) -> ReferenceId:
        return ReferenceId(
            reference_type=self.reference_type,
            reference_datetime=self.reference_datetime,
        )

    def __str__(self) -> str:
        return (
            f"{self.reference_type.value}@{self.reference_datetime.isoformat()}"
            f"/{self.report_datetime.isoformat()}"
        )


class SpotCheckMismatch(BaseModel):
    """A single field-level disagreement.

    Lifecycle fields are only populated on mismatches loaded from storage.
    """

    mismatch_type: SpotCheckMismatchType
    observed_data: str = ""
    reference_data: str = ""
    notes: str | None = None

    mismatch_id: int | None = None
    state: MismatchState = MismatchState.OPEN
    ignore_status: SpotCheckMismatchIgnore = SpotCheckMismatchIgnore.NOT_IGNORED
    issue_ids: list[str] = Field(default_factory=list)
    first_seen_datetime: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_ignored(self) -> bool:
        return self.ignore_status != SpotCheckMismatchIgnore.NOT_IGNORED


class PriorMismatch(BaseModel):
    """A historical record for the same lifecycle identity, kept as a lookup."""

    report_datetime: datetime
    observed_datetime: datetime
    state: MismatchState
    observed_data: str
    reference_data: str

    model_config = ConfigDict(frozen=True, extra="forbid")


@dataclass
class Observation:
    """The result of comparing one content key against one reference."""

    reference_id: ReferenceId
    key: Key
    observed_datetime: datetime
    report_datetime: datetime | None = None
    mismatches: dict[SpotCheckMismatchType, SpotCheckMismatch] = field(default_factory=dict)
    prior_mismatches: dict[SpotCheckMismatchType, list[PriorMismatch]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        initial, self.mismatches = self.mismatches, {}
        for mismatch in initial.values():
            self.add_mismatch(mismatch)

    @property
    def reference_type(self) -> SpotCheckRefType:
        return self.reference_id.reference_type

    def add_mismatch(self, mismatch: SpotCheckMismatch) -> None:
        if mismatch.mismatch_type not in self.reference_type.checked_mismatch_types():
            raise InvalidMismatchForReferenceType(mismatch.mismatch_type, self.reference_type)
        self.mismatches[mismatch.mismatch_type] = mismatch

    def has_mismatch(self, mismatch_type: SpotCheckMismatchType) -> bool:
        return mismatch_type in self.mismatches

    def mismatch_types(self, ignored: bool) -> set[SpotCheckMismatchType]:
        return {
            mismatch.mismatch_type
            for mismatch in self.mismatches.values()
            if mismatch.is_ignored == ignored
        }

    def mismatch_status_counts(self, ignored: bool) -> dict[MismatchState, int]:
        counts = Counter(
            mismatch.state
            for mismatch in self.mismatches.values()
            if mismatch.is_ignored == ignored
        )
        return dict(counts)

    def mismatch_status_types(self, ignored: bool) -> dict[SpotCheckMismatchType, MismatchState]:
        return {
            mismatch.mismatch_type: mismatch.state
            for mismatch in self.mismatches.values()
            if mismatch.is_ignored == ignored
        }

    def add_prior_mismatches(
        self, mismatch_type: SpotCheckMismatchType, priors: Iterable[PriorMismatch]
    ) -> None:
        self.prior_mismatches.setdefault(mismatch_type, []).extend(priors)

    @classmethod
    def ref_missing(
        cls, reference_id: ReferenceId, key: Key, observed_datetime: datetime
    ) -> "Observation":
        observation = cls(reference_id=reference_id, key=key, observed_datetime=observed_datetime)
        observation.add_mismatch(
            SpotCheckMismatch(
                mismatch_type=SpotCheckMismatchType.REFERENCE_DATA_MISSING,
                observed_data=str(key),
                reference_data="",
            )
        )
        return observation

    @classmethod
    def observe_missing(
        cls, reference_id: ReferenceId, key: Key, observed_datetime: datetime
    ) -> "Observation":
        observation = cls(reference_id=reference_id, key=key, observed_datetime=observed_datetime)
        observation.add_mismatch(
            SpotCheckMismatch(
                mismatch_type=SpotCheckMismatchType.OBSERVE_DATA_MISSING,
                observed_data="",
                reference_data=str(key),
            )
        )
        return observation

    @classmethod
    def empty(
        cls, reference_id: ReferenceId, key: Key, observed_datetime: datetime
    ) -> "Observation":
        return cls(reference_id=reference_id, key=key, observed_datetime=observed_datetime)


@dataclass
class Report:
    """All observations from one audit run of one reference type."""

    report_id: ReportId
    notes: str | None = None
    checked_keys: set[Key] = field(default_factory=set)
    observations: dict[Key, Observation] = field(default_factory=dict)

    @property
    def reference_type(self) -> SpotCheckRefType:
        return self.report_id.reference_type

    @property
    def reference_id(self) -> ReferenceId:
        return self.report_id.reference_id

    @property
    def reference_datetime(self) -> datetime:
        return self.report_id.reference_datetime

    @property
    def report_datetime(self) -> datetime:
        return self.report_id.report_datetime

    def add_observation(self, observation: Observation) -> None:
        if observation.reference_type != self.reference_type:
            raise ValueError(
                f"Observation reference type {observation.reference_type.value} "
                f"does not match report type {self.reference_type.value}"
            )
        observation.report_datetime = self.report_datetime
        self.observations[observation.key] = observation
        self.checked_keys.add(observation.key)

    def add_observations(self, observations: Iterable[Observation]) -> None:
        for observation in observations:
            self.add_observation(observation)

    def add_ref_missing(self, key: Key) -> Observation:
        observation = Observation.ref_missing(self.reference_id, key, self.report_datetime)
        self.add_observation(observation)
        return observation

    def add_empty(self, key: Key) -> Observation:
        observation = Observation.empty(self.reference_id, key, self.report_datetime)
        self.add_observation(observation)
        return observation

    def mismatch_count(self) -> int:
        return sum(len(observation.mismatches) for observation in self.observations.values())

    def mismatch_status_counts(self, ignored: bool) -> dict[MismatchState, int]:
        totals: Counter[MismatchState] = Counter()
        for observation in self.observations.values():
            totals.update(observation.mismatch_status_counts(ignored))
        return dict(totals)

    def mismatch_type_counts(self, ignored: bool) -> dict[SpotCheckMismatchType, int]:
        totals: Counter[SpotCheckMismatchType] = Counter()
        for observation in self.observations.values():
            totals.update(observation.mismatch_types(ignored))
        return dict(totals)


def derive_status(
    state: MismatchState, first_seen: datetime | None, observed: datetime
) -> MismatchStatus:
    if state == MismatchState.CLOSED:
        return MismatchStatus.RESOLVED
    if first_seen is None or first_seen >= observed:
        return MismatchStatus.NEW
    return MismatchStatus.EXISTING


__all__ = [
    "Key",
    "MismatchState",
    "MismatchStatus",
    "Observation",
    "PriorMismatch",
    "ReferenceId",
    "Report",
    "ReportId",
    "SpotCheckContentType",
    "SpotCheckDataSource",
    "SpotCheckMismatch",
    "SpotCheckMismatchIgnore",
    "SpotCheckMismatchType",
    "SpotCheckRefType",
    "derive_status",
]
