"""Report plans for senate website bill and calendar dumps."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, ClassVar, Iterable

from parsers.senate_site_json import parse_bill_fragment, parse_calendar_fragment
from persistence.contracts import ContentDataService, DumpSource
from schemas.internal.content import Bill
from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId, session_year_of
from schemas.internal.references import DumpFragment, SenateSiteBill, SenateSiteCalendar, SenateSiteDump
from schemas.internal.spotcheck import Key, SpotCheckRefType
from services.report_engine import ReportPlan
from spotcheck.errors import ReferenceDataNotFound

logger = logging.getLogger(__name__)

_MAX_LISTING_PAGES = 10_000


def list_all_keys(content_service: ContentDataService, session: int) -> set[Key]:
    """Every key the content data service knows for a session, page by page."""
    keys: set[Key] = set()
    for page in range(1, _MAX_LISTING_PAGES + 1):
        batch = content_service.list_keys(session, page)
        if not batch:
            break
        keys.update(batch)
    return keys


def in_window(value: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


class _SenateSiteDumpPlan(ReportPlan[SenateSiteDump, Any]):
    def __init__(
        self,
        dump_source: DumpSource,
        content_service: ContentDataService,
        settings=None,
    ) -> None:
        self._dump_source = dump_source
        self._content_service = content_service
        self.configure(settings)

    def load_reference(self, start: datetime | None, end: datetime | None) -> SenateSiteDump:
        dumps = self._dump_source.get_pending_dumps(self.reference_type)
        for dump in dumps:
            if not in_window(dump.dump_datetime, start, end):
                continue
            if not dump.complete:
                logger.info(
                    "Skipping incomplete %s dump %s (%d/%d fragments)",
                    self.reference_type.ref_name,
                    dump.dump_datetime.isoformat(),
                    len(dump.fragments),
                    dump.total_fragments,
                )
                continue
            return dump
        raise ReferenceDataNotFound(self.reference_type)

    def reference_datetime(self, artifact: SenateSiteDump) -> datetime:
        return artifact.dump_datetime

    def notes(self, artifact: SenateSiteDump) -> str | None:
        return artifact.notes

    def fragments(self, artifact: SenateSiteDump) -> Iterable[DumpFragment]:
        return artifact.fragments

    def load_content(self, key: Key) -> Any | None:
        return self._content_service.get_content(key)

    def is_published(self, key: Key) -> bool:
        return self._content_service.get_publish_status(key)

    def finalize(self, artifact: SenateSiteDump, succeeded: bool) -> None:
        # A dump that failed once would fail again; it is archived either way.
        if not succeeded:
            logger.warning(
                "Archiving %s dump %s after a failed run",
                self.reference_type.ref_name,
                artifact.dump_datetime.isoformat(),
            )
        self._dump_source.set_processed(artifact)


class SenateSiteBillPlan(_SenateSiteDumpPlan):
    """Bill amendments from a dump against the local bills of the dump's session.

    Every amendment of a local bill that no dump record mentions is
    reported missing from the reference when it is published.
    """

    reference_type: ClassVar[SpotCheckRefType] = SpotCheckRefType.SENATE_SITE_BILLS

    def parse(self, fragment: DumpFragment) -> list[SenateSiteBill]:
        payload = self._dump_source.read_fragment(fragment)
        return parse_bill_fragment(payload, fragment.dump_datetime)

    def key_of(self, record: SenateSiteBill) -> BillId:
        return record.bill_id

    def universe(self, artifact: SenateSiteDump) -> set[Key]:
        return list_all_keys(self._content_service, session_year_of(artifact.year))

    def base_key(self, key: BillId) -> BaseBillId:
        return key.base_bill_id

    def expand(self, base_key: BaseBillId, content: Bill) -> list[BillId]:
        return content.amendment_ids

    def children_of(self, base_key: BaseBillId) -> list[BillId]:
        bill = self._content_service.get_content(base_key)
        return bill.amendment_ids if bill is not None else []


class SenateSiteCalendarPlan(_SenateSiteDumpPlan):
    reference_type: ClassVar[SpotCheckRefType] = SpotCheckRefType.SENATE_SITE_CALENDAR

    def parse(self, fragment: DumpFragment) -> list[SenateSiteCalendar]:
        payload = self._dump_source.read_fragment(fragment)
        return parse_calendar_fragment(payload, fragment.dump_datetime)

    def key_of(self, record: SenateSiteCalendar) -> CalendarEntryListId:
        return record.list_id

    def universe(self, artifact: SenateSiteDump) -> set[Key]:
        return list_all_keys(self._content_service, artifact.year)


__all__ = ["SenateSiteBillPlan", "SenateSiteCalendarPlan", "in_window", "list_all_keys"]
