"""Canonical content DTOs returned by the content data service."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId


def _normalize_version(value: str) -> str:
    value = (value or "").strip().upper()
    return "" if value in {"DEFAULT", "ORIGINAL"} else value


class BillAction(BaseModel):
    action_date: date
    chamber: str
    text: str
    sequence_no: int = 0

    model_config = ConfigDict(extra="ignore")

    def render(self) -> str:
        return f"{self.action_date.isoformat()} {self.chamber.upper()} {self.text.strip()}"


class BillVote(BaseModel):
    vote_date: date
    chamber: str = "SENATE"
    vote_type: str = "FLOOR"
    members_by_code: dict[str, list[str]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    def render(self) -> str:
        parts = []
        for code in sorted(self.members_by_code):
            names = ", ".join(sorted(name.strip() for name in self.members_by_code[code]))
            parts.append(f"{code.upper()}: {names}")
        return f"{self.vote_date.isoformat()} {self.vote_type.upper()} " + " | ".join(parts)


class BillAmendment(BaseModel):
    version: str = ""
    published: bool = True
    act_clause: str | None = None
    law_section: str | None = None
    law_code: str | None = None
    same_as: list[str] = Field(default_factory=list)
    cosponsors: list[str] = Field(default_factory=list)
    multisponsors: list[str] = Field(default_factory=list)
    full_text: str | None = None
    memo: str | None = None
    votes: list[BillVote] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class Bill(BaseModel):
    """A bill with all of its amendments as held by the content data service."""

    print_no: str
    session: int
    active_version: str = ""
    title: str | None = None
    summary: str | None = None
    sponsor: str | None = None
    law_section: str | None = None
    law_code: str | None = None
    last_status: str | None = None
    last_status_date: date | None = None
    actions: list[BillAction] = Field(default_factory=list)
    amendments: dict[str, BillAmendment] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("active_version")
    @classmethod
    def _normalize_active_version(cls, value: str) -> str:
        return _normalize_version(value)

    @field_validator("amendments")
    @classmethod
    def _normalize_amendment_keys(
        cls, value: dict[str, BillAmendment]
    ) -> dict[str, BillAmendment]:
        return {_normalize_version(version): amendment for version, amendment in value.items()}

    @property
    def base_bill_id(self) -> BaseBillId:
        return BaseBillId(print_no=self.print_no, session=self.session)

    @property
    def amendment_ids(self) -> list[BillId]:
        base = self.base_bill_id
        return [base.with_version(version) for version in sorted(self.amendments)]

    def amendment(self, version: str) -> BillAmendment | None:
        return self.amendments.get(_normalize_version(version))

    @property
    def active_amendment(self) -> BillAmendment | None:
        return self.amendment(self.active_version)

    def is_published(self, version: str | None = None) -> bool:
        amendment = self.amendment(self.active_version if version is None else version)
        return bool(amendment and amendment.published)


class CalendarEntry(BaseModel):
    cal_no: int
    print_no: str
    session: int | None = None

    model_config = ConfigDict(extra="ignore")

    def render(self) -> str:
        return f"{self.cal_no}:{self.print_no.upper()}"


class CalendarEntryList(BaseModel):
    """A floor/supplemental calendar or an active list."""

    list_id: CalendarEntryListId
    cal_date: date | None = None
    release_datetime: datetime | None = None
    entries: list[CalendarEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


__all__ = [
    "Bill",
    "BillAction",
    "BillAmendment",
    "BillVote",
    "CalendarEntry",
    "CalendarEntryList",
]
