"""Typed reference records, one DTO per reference source."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from schemas.internal.content import BillAction, BillVote, CalendarEntry
from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId
from schemas.internal.spotcheck import SpotCheckRefType


class SenateSiteBill(BaseModel):
    """One bill amendment as published in a senate website dump."""

    reference_datetime: datetime
    print_no: str
    session: int
    version: str = ""
    active_version: str = ""
    published: bool = True
    title: str | None = None
    summary: str | None = None
    sponsor: str | None = None
    cosponsors: list[str] = Field(default_factory=list)
    multisponsors: list[str] = Field(default_factory=list)
    law_section: str | None = None
    law_code: str | None = None
    act_clause: str | None = None
    same_as: list[str] = Field(default_factory=list)
    actions: list[BillAction] = Field(default_factory=list)
    last_status: str | None = None
    full_text: str | None = None
    memo: str | None = None
    votes: list[BillVote] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def bill_id(self) -> BillId:
        return BillId(print_no=self.print_no, session=self.session, version=self.version)


class SenateSiteCalendar(BaseModel):
    """One calendar entry list as published in a senate website dump."""

    reference_datetime: datetime
    year: int
    cal_no: int
    list_type: str
    sequence: int = 0
    cal_date: date | None = None
    release_datetime: datetime | None = None
    entries: list[CalendarEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def list_id(self) -> CalendarEntryListId:
        return CalendarEntryListId(
            year=self.year, cal_no=self.cal_no, list_type=self.list_type, sequence=self.sequence
        )


class BillScrapeVote(BaseModel):
    vote_date: date
    members_by_code: dict[str, list[str]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")


class BillScrapeReference(BaseModel):
    """Bill text, memo and Senate votes scraped from LRS."""

    base_bill_id: BaseBillId
    version: str = ""
    reference_datetime: datetime
    text: str = ""
    memo: str = ""
    votes: list[BillScrapeVote] = Field(default_factory=list)
    not_found: bool = False

    model_config = ConfigDict(extra="forbid")

    @property
    def bill_id(self) -> BillId:
        return self.base_bill_id.with_version(self.version)

    @classmethod
    def missing(cls, base_bill_id: BaseBillId, reference_datetime: datetime) -> "BillScrapeReference":
        return cls(base_bill_id=base_bill_id, reference_datetime=reference_datetime, not_found=True)


class DumpFragment(BaseModel):
    """A single file of a multi-fragment website dump."""

    ref_type: SpotCheckRefType
    year: int
    dump_datetime: datetime
    sequence: int = Field(ge=1)
    total_fragments: int = Field(ge=1)
    path: Path

    model_config = ConfigDict(frozen=True, extra="forbid")


class SenateSiteDump(BaseModel):
    ref_type: SpotCheckRefType
    year: int
    dump_datetime: datetime
    total_fragments: int
    fragments: list[DumpFragment] = Field(default_factory=list)
    notes: str | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def complete(self) -> bool:
        sequences = {fragment.sequence for fragment in self.fragments}
        return sequences == set(range(1, self.total_fragments + 1))


__all__ = [
    "BillScrapeReference",
    "BillScrapeVote",
    "DumpFragment",
    "SenateSiteBill",
    "SenateSiteCalendar",
    "SenateSiteDump",
]
