"""Application facade over the spot-check components.

The CLI and the admin API talk only to :class:`SpotcheckService`, which
owns the wiring of stores, plans, the engine and the scheduler.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from checkers.registry import CheckerRegistry, default_registry
from core.config import Settings
from persistence.fs_store import FsDumpSource
from persistence.models import DeadLetterEntry, MismatchRecord, PaginatedList, ScrapeQueueEntry
from persistence.reference_store import ReferenceStore
from persistence.report_store import SqliteReportStore
from schemas.internal.keys import BaseBillId, BillId
from schemas.internal.spotcheck import Report, SpotCheckMismatchIgnore, SpotCheckRefType
from schemas.requests import OpenMismatchQuery, ReportSummaryQuery
from services.lifecycle import MismatchLifecycleManager
from services.openleg import OpenlegBillDataService, OpenlegCalendarDataService, OpenlegClient
from services.plans import (
    OpenlegBillPlan,
    ScrapedBillPlan,
    SenateSiteBillPlan,
    SenateSiteCalendarPlan,
)
from services.report_engine import ReportEngine, ReportPlan
from services.runs import RunResult, SpotcheckRunService
from services.scheduler import SpotcheckScheduler
from services.scraping import DispatchOutcome, LrsBillScraper, ScrapeDispatcher

logger = logging.getLogger(__name__)


def parse_bill_key(text: str) -> BaseBillId:
    """Accept ``S100-2023`` or an amended id such as ``S100A-2023``."""
    try:
        return BaseBillId.parse(text)
    except ValueError:
        return BillId.parse(text).base_bill_id


def build_plans(
    settings: Settings,
    reference_store: ReferenceStore,
    dump_source: FsDumpSource,
) -> list[ReportPlan]:
    client = OpenlegClient(
        settings.openleg_base_url,
        api_key=settings.openleg_api_key,
        timeout=settings.http_timeout_sec,
        page_size=settings.openleg_page_size,
    )
    bills = OpenlegBillDataService(client)
    calendars = OpenlegCalendarDataService(client)
    plans: list[ReportPlan] = [
        SenateSiteBillPlan(dump_source, bills, settings),
        SenateSiteCalendarPlan(dump_source, calendars, settings),
        ScrapedBillPlan(reference_store, bills, settings=settings),
    ]
    if settings.openleg_peer_url:
        peer = OpenlegClient(
            settings.openleg_peer_url,
            timeout=settings.http_timeout_sec,
            page_size=settings.openleg_page_size,
            source="openleg-peer",
        )
        plans.append(OpenlegBillPlan(peer, bills, settings))
    else:
        logger.debug("OPENLEG_PEER_URL is not set; openleg-bill reports are unavailable")
    return plans


class SpotcheckService:
    def __init__(
        self,
        settings: Settings,
        report_store: SqliteReportStore,
        reference_store: ReferenceStore,
        engine: ReportEngine,
        dispatcher: ScrapeDispatcher | None = None,
    ) -> None:
        self.settings = settings
        self.report_store = report_store
        self.reference_store = reference_store
        self.engine = engine
        self.lifecycle = MismatchLifecycleManager(report_store)
        self.runs = SpotcheckRunService(
            engine,
            self.lifecycle,
            reference_types=[
                ref_type
                for ref_type in (SpotCheckRefType.from_name(n) for n in settings.reference_types)
                if ref_type in engine.reference_types
            ],
            run_timeout=settings.spotcheck_run_timeout_sec,
        )
        self.dispatcher = dispatcher
        self.scheduler = SpotcheckScheduler(settings, self.runs, dispatcher)

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: CheckerRegistry | None = None
    ) -> "SpotcheckService":
        report_store = SqliteReportStore(settings.spotcheck_db_path)
        reference_store = ReferenceStore.from_settings(settings)
        dump_source = FsDumpSource.from_settings(settings)
        engine = ReportEngine(
            build_plans(settings, reference_store, dump_source),
            registry or default_registry(),
        )
        dispatcher = ScrapeDispatcher(reference_store, LrsBillScraper(settings), settings)
        return cls(settings, report_store, reference_store, engine, dispatcher)

    # Reports

    def run_report(
        self,
        ref_type: SpotCheckRefType,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> RunResult:
        return self.runs.run_report(ref_type, start, end, timeout=timeout)

    def run_reports(self, ref_types: Iterable[SpotCheckRefType] | None = None) -> list[RunResult]:
        if ref_types is None:
            return self.runs.run_weekly_reports()
        return self.runs.run_reports(ref_types)

    def list_reports(self, query: ReportSummaryQuery) -> PaginatedList:
        return self.report_store.list_report_summaries(query)

    def get_report(self, ref_type: SpotCheckRefType, run_datetime: datetime) -> Report:
        return self.report_store.get_report_by_run(ref_type, run_datetime)

    def delete_report(self, ref_type: SpotCheckRefType, run_datetime: datetime) -> None:
        report = self.report_store.get_report_by_run(ref_type, run_datetime)
        self.report_store.delete_report(report.report_id)
        logger.info("Deleted report %s", report.report_id)

    # Mismatches

    def query_mismatches(self, query: OpenMismatchQuery) -> PaginatedList:
        return self.report_store.query_open_mismatches(query)

    def mismatch_summary(
        self,
        ref_types: Iterable[SpotCheckRefType] | None = None,
        observed_after: datetime | None = None,
    ) -> list[dict[str, Any]]:
        return self.report_store.get_open_mismatch_summary(
            ref_types if ref_types is not None else list(SpotCheckRefType), observed_after
        )

    def get_mismatch(self, mismatch_id: int) -> MismatchRecord:
        return self.report_store.get_mismatch(mismatch_id)

    def set_mismatch_ignore(
        self, mismatch_id: int, status: SpotCheckMismatchIgnore
    ) -> MismatchRecord:
        self.lifecycle.set_ignore_status(mismatch_id, status)
        return self.report_store.get_mismatch(mismatch_id)

    def add_issue(self, mismatch_id: int, issue_id: str) -> MismatchRecord:
        self.lifecycle.add_issue_id(mismatch_id, issue_id)
        return self.report_store.get_mismatch(mismatch_id)

    def remove_issue(self, mismatch_id: int, issue_id: str) -> MismatchRecord:
        self.lifecycle.remove_issue_id(mismatch_id, issue_id)
        return self.report_store.get_mismatch(mismatch_id)

    # Scrape queue

    def enqueue(self, bill_id: str, priority: int = 0) -> ScrapeQueueEntry:
        return self.reference_store.enqueue(parse_bill_key(bill_id), priority)

    def remove_from_queue(self, bill_id: str) -> None:
        self.reference_store.remove(parse_bill_key(bill_id))

    def list_queue(
        self, *, limit: int | None = None, offset: int = 0, order: str = "DESC"
    ) -> PaginatedList:
        return self.reference_store.list_queue(limit=limit, offset=offset, order=order)

    def dead_letters(self) -> list[DeadLetterEntry]:
        return self.reference_store.list_dead_letters()

    def dispatch_once(self) -> DispatchOutcome | None:
        if self.dispatcher is None:
            raise RuntimeError("No scrape dispatcher is configured")
        return self.dispatcher.dispatch_once()

    # Scheduler

    def is_scheduler_enabled(self) -> bool:
        return self.scheduler.is_enabled()

    def set_scheduler_enabled(self, enabled: bool) -> None:
        self.scheduler.set_enabled(enabled)

    def scheduler_status(self) -> dict[str, Any]:
        return {
            "enabled": self.scheduler.is_enabled(),
            "interval_sec": self.settings.spotcheck_interval_sec,
            "reference_types": [
                {
                    "reference_type": ref_type,
                    "running": self.scheduler.is_running(ref_type),
                    "last_run": self.scheduler.last_run(ref_type),
                }
                for ref_type in self.scheduler.reference_types
            ],
        }

    def trigger(self, ref_type: SpotCheckRefType) -> bool:
        return self.scheduler.trigger(ref_type)


__all__ = ["SpotcheckService", "build_plans", "parse_bill_key"]
