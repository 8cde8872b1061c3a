"""Decode senate website dump fragments into typed reference records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from schemas.internal.references import SenateSiteBill, SenateSiteCalendar
from spotcheck.errors import ParseError

RecordT = TypeVar("RecordT", bound=BaseModel)


def parse_records(
    payload: dict[str, Any], model: type[RecordT], reference_datetime: datetime
) -> list[RecordT]:
    records = payload.get("records")
    if not isinstance(records, list):
        raise ParseError("Dump fragment is missing its 'records' list")
    parsed: list[RecordT] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ParseError(f"Record {index} of dump fragment is not an object")
        try:
            parsed.append(
                model.model_validate({**record, "reference_datetime": reference_datetime})
            )
        except ValidationError as exc:
            raise ParseError(f"Invalid {model.__name__} record {index}: {exc}") from exc
    return parsed


def parse_bill_fragment(payload: dict[str, Any], reference_datetime: datetime) -> list[SenateSiteBill]:
    return parse_records(payload, SenateSiteBill, reference_datetime)


def parse_calendar_fragment(
    payload: dict[str, Any], reference_datetime: datetime
) -> list[SenateSiteCalendar]:
    return parse_records(payload, SenateSiteCalendar, reference_datetime)


__all__ = ["parse_bill_fragment", "parse_calendar_fragment", "parse_records"]
