"""Senate website calendar dump vs. local calendar entry lists."""

from __future__ import annotations

from checkers.base import BaseChecker
from schemas.internal.content import CalendarEntryList
from schemas.internal.references import SenateSiteCalendar
from schemas.internal.spotcheck import Observation, SpotCheckMismatchType, SpotCheckRefType

_T = SpotCheckMismatchType


class SenateSiteCalendarChecker(BaseChecker[CalendarEntryList, SenateSiteCalendar]):
    reference_type = SpotCheckRefType.SENATE_SITE_CALENDAR

    def check(
        self, content: CalendarEntryList, reference: SenateSiteCalendar, observation: Observation
    ) -> Observation:
        self.check_object(observation, content.cal_date, reference.cal_date, _T.CALENDAR_CAL_DATE)
        self.check_object(
            observation,
            _to_seconds(content.release_datetime),
            _to_seconds(reference.release_datetime),
            _T.CALENDAR_RELEASE_DATETIME,
        )
        self.check_collection(
            observation,
            sorted(content.entries, key=lambda entry: entry.cal_no),
            sorted(reference.entries, key=lambda entry: entry.cal_no),
            _T.CALENDAR_ENTRY_LIST,
            lambda entry: entry.render(),
            "\n",
        )
        return observation


def _to_seconds(value):
    return value.replace(microsecond=0) if value is not None else None


__all__ = ["SenateSiteCalendarChecker"]
