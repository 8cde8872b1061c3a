"""Content keys: the minimal identifiers of comparable units.

Keys are frozen value objects tagged by ``kind``. Each variant maps to and
from a flat ``dict[str, str]`` key-map so heterogeneous keys share storage.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


_BILL_ID_PATTERN = re.compile(r"^([A-Za-z])(\d+)([A-Za-z]?)-(\d{4})$")
_BASE_BILL_ID_PATTERN = re.compile(r"^([A-Za-z])(\d+)-(\d{4})$")


def session_year_of(year: int) -> int:
    """Legislative sessions start on odd years."""
    return year if year % 2 == 1 else year - 1


class _Key(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_key_map(self) -> dict[str, str]:
        raise NotImplementedError

    def to_json(self) -> str:
        return json.dumps(self.to_key_map(), sort_keys=True)


class BaseBillId(_Key):
    kind: Literal["base_bill"] = "base_bill"
    print_no: str
    session: int

    @field_validator("print_no")
    @classmethod
    def _normalize_print_no(cls, value: str) -> str:
        value = value.strip().upper()
        if not re.fullmatch(r"[A-Z]\d+", value):
            raise ValueError(f"Invalid base print no: {value!r}")
        return value

    @field_validator("session")
    @classmethod
    def _normalize_session(cls, value: int) -> int:
        return session_year_of(value)

    @classmethod
    def parse(cls, text: str) -> "BaseBillId":
        match = _BASE_BILL_ID_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid base bill id: {text!r}")
        prefix, number, session = match.groups()
        return cls(print_no=f"{prefix}{int(number)}", session=int(session))

    def with_version(self, version: str = "") -> "BillId":
        return BillId(print_no=self.print_no, session=self.session, version=version)

    def to_key_map(self) -> dict[str, str]:
        return {"printNo": self.print_no, "session": str(self.session)}

    def __str__(self) -> str:
        return f"{self.print_no}-{self.session}"


class BillId(_Key):
    """A bill amendment id such as ``S100A-2023``."""

    kind: Literal["bill"] = "bill"
    print_no: str
    session: int
    version: str = ""

    @field_validator("print_no")
    @classmethod
    def _normalize_print_no(cls, value: str) -> str:
        value = value.strip().upper()
        if not re.fullmatch(r"[A-Z]\d+", value):
            raise ValueError(f"Invalid base print no: {value!r}")
        return value

    @field_validator("version")
    @classmethod
    def _normalize_version(cls, value: str) -> str:
        value = value.strip().upper()
        if value in {"DEFAULT", "ORIGINAL"}:
            return ""
        if len(value) > 1 or (value and not value.isalpha()):
            raise ValueError(f"Invalid amendment version: {value!r}")
        return value

    @field_validator("session")
    @classmethod
    def _normalize_session(cls, value: int) -> int:
        return session_year_of(value)

    @classmethod
    def parse(cls, text: str) -> "BillId":
        match = _BILL_ID_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid bill id: {text!r}")
        prefix, number, version, session = match.groups()
        return cls(print_no=f"{prefix}{int(number)}", session=int(session), version=version)

    @property
    def base_bill_id(self) -> BaseBillId:
        return BaseBillId(print_no=self.print_no, session=self.session)

    @property
    def amended_print_no(self) -> str:
        return f"{self.print_no}{self.version}"

    def to_key_map(self) -> dict[str, str]:
        return {
            "printNo": self.print_no,
            "session": str(self.session),
            "version": self.version,
        }

    def __str__(self) -> str:
        return f"{self.amended_print_no}-{self.session}"


class CalendarEntryListId(_Key):
    """One entry list (floor, supplemental or active list) of a calendar."""

    kind: Literal["calendar_entry_list"] = "calendar_entry_list"
    year: int
    cal_no: int = Field(ge=0)
    list_type: str
    sequence: int = Field(default=0, ge=0)

    @field_validator("list_type")
    @classmethod
    def _normalize_list_type(cls, value: str) -> str:
        return value.strip().upper()

    def to_key_map(self) -> dict[str, str]:
        return {
            "year": str(self.year),
            "calNo": str(self.cal_no),
            "type": self.list_type,
            "sequenceNo": str(self.sequence),
        }

    def __str__(self) -> str:
        return f"{self.year}-{self.cal_no}-{self.list_type}-{self.sequence}"


ContentKey = Annotated[
    Union[BillId, BaseBillId, CalendarEntryListId], Field(discriminator="kind")
]

KEY_TYPES: dict[str, type[_Key]] = {
    "bill": BillId,
    "base_bill": BaseBillId,
    "calendar_entry_list": CalendarEntryListId,
}


def key_from_map(kind: str, key_map: dict[str, str]) -> BillId | BaseBillId | CalendarEntryListId:
    """Rebuild a key from its stored kind tag and key-map."""
    if kind == "bill":
        return BillId(
            print_no=key_map["printNo"],
            session=int(key_map["session"]),
            version=key_map.get("version", ""),
        )
    if kind == "base_bill":
        return BaseBillId(print_no=key_map["printNo"], session=int(key_map["session"]))
    if kind == "calendar_entry_list":
        return CalendarEntryListId(
            year=int(key_map["year"]),
            cal_no=int(key_map["calNo"]),
            list_type=key_map["type"],
            sequence=int(key_map.get("sequenceNo", "0")),
        )
    raise ValueError(f"Unknown content key kind: {kind!r}")


def key_from_json(kind: str, payload: str) -> BillId | BaseBillId | CalendarEntryListId:
    return key_from_map(kind, json.loads(payload))


def parse_key(kind: str, text: str) -> BillId | BaseBillId | CalendarEntryListId:
    """Parse the display form of a key, e.g. ``S100A-2023`` for a bill."""
    if kind == "bill":
        return BillId.parse(text)
    if kind == "base_bill":
        return BaseBillId.parse(text)
    if kind == "calendar_entry_list":
        parts = text.strip().split("-")
        if len(parts) != 4:
            raise ValueError(f"Invalid calendar entry list id: {text!r}")
        year, cal_no, list_type, sequence = parts
        return CalendarEntryListId(
            year=int(year), cal_no=int(cal_no), list_type=list_type, sequence=int(sequence)
        )
    raise ValueError(f"Unknown content key kind: {kind!r}")


__all__ = [
    "BaseBillId",
    "BillId",
    "CalendarEntryListId",
    "ContentKey",
    "KEY_TYPES",
    "key_from_json",
    "key_from_map",
    "parse_key",
    "session_year_of",
]
