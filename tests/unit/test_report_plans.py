from datetime import datetime, timezone
from pathlib import Path

import pytest

from checkers.registry import default_registry
from persistence.fs_store import FsDumpSource
from persistence.reference_store import ReferenceStore
from schemas.internal.keys import BaseBillId, BillId
from schemas.internal.spotcheck import SpotCheckMismatchType, SpotCheckRefType
from services.plans import OpenlegBillPlan, ScrapedBillPlan, SenateSiteBillPlan, SenateSiteCalendarPlan
from services.report_engine import ReportEngine
from spotcheck.errors import PipelineFailure, ParseError, ReferenceDataNotFound

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)

MISSING_PAGE = (
    '<html><body><div id="nv_bot_contents">'
    '<font color="red">Bill Status Information Not Found</font>'
    "</div></body></html>"
)


def _dump(source: FsDumpSource, ref_type, records, *, sequence=1, total=1, at="20240304T120000"):
    source.stage_fragment(
        ref_type,
        {
            "year": 2024,
            "sequence": sequence,
            "total_fragments": total,
            "dump_datetime": at,
            "records": records,
        },
    )


def test_senate_site_bill_run(tmp_path: Path, content_service, bill_factory, clock) -> None:
    s100, s200 = BaseBillId.parse("S100-2023"), BaseBillId.parse("S200-2023")
    content_service.items = {s100: bill_factory(title="FOO"), s200: bill_factory("S200")}
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    _dump(source, SpotCheckRefType.SENATE_SITE_BILLS, [{"print_no": "S100", "session": 2023, "title": "BAR"}])
    plan = SenateSiteBillPlan(source, content_service)

    report = ReportEngine([plan], default_registry(), clock).run(SpotCheckRefType.SENATE_SITE_BILLS)

    title = report.observations[BillId.parse("S100-2023")].mismatches[SpotCheckMismatchType.BILL_TITLE]
    assert (title.observed_data, title.reference_data) == ("FOO", "BAR")
    assert set(report.observations[BillId.parse("S200-2023")].mismatches) == {
        SpotCheckMismatchType.REFERENCE_DATA_MISSING
    }
    assert report.reference_datetime == T0
    assert source.get_pending_dumps(SpotCheckRefType.SENATE_SITE_BILLS) == []


def test_senate_site_plan_skips_incomplete_dumps(tmp_path: Path, content_service) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    _dump(source, SpotCheckRefType.SENATE_SITE_BILLS, [], sequence=1, total=2)
    _dump(source, SpotCheckRefType.SENATE_SITE_BILLS, [], at="20240101T000000")
    plan = SenateSiteBillPlan(source, content_service)

    dump = plan.load_reference(None, None)
    assert dump.dump_datetime == datetime(2024, 1, 1, tzinfo=timezone.utc)

    with pytest.raises(ReferenceDataNotFound):
        plan.load_reference(None, datetime(2023, 12, 31, tzinfo=timezone.utc))


def test_senate_site_calendar_without_local_calendar(tmp_path: Path, content_service, clock) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    _dump(source, SpotCheckRefType.SENATE_SITE_CALENDAR, [{"year": 2024, "cal_no": 5, "list_type": "floor"}])
    plan = SenateSiteCalendarPlan(source, content_service)

    report = ReportEngine([plan], default_registry(), clock).run(SpotCheckRefType.SENATE_SITE_CALENDAR)

    (observation,) = report.observations.values()
    assert observation.key.cal_no == 5
    assert set(observation.mismatches) == {SpotCheckMismatchType.OBSERVE_DATA_MISSING}


def test_scraped_bill_run_checks_newest_scrape(
    tmp_path: Path, content_service, bill_factory, clock, s100
) -> None:
    content_service.items = {s100: bill_factory()}
    store = ReferenceStore(
        tmp_path / "db.sqlite", staging_dir=tmp_path / "staging", archive_dir=tmp_path / "archive"
    )
    older = store.save_content(s100, b"<html></html>", scraped_at=T0)
    newer = store.save_content(s100, MISSING_PAGE.encode(), scraped_at=T0.replace(hour=13))
    plan = ScrapedBillPlan(store, content_service)

    batch = plan.load_reference(None, None)
    assert [scrape.file_name for scrape in batch.files] == [newer.file_name]
    assert [scrape.file_name for scrape in batch.superseded] == [older.file_name]

    report = ReportEngine([plan], default_registry(), clock).run(SpotCheckRefType.LBDC_SCRAPED_BILL)

    assert set(report.observations[s100].mismatches) == {SpotCheckMismatchType.REFERENCE_DATA_MISSING}
    assert store.list_incoming() == []
    assert all(store.get_file(name).archived for name in (older.file_name, newer.file_name))


def test_malformed_scrape_fails_run_and_stays_incoming(
    tmp_path: Path, content_service, clock, s100
) -> None:
    store = ReferenceStore(
        tmp_path / "db.sqlite", staging_dir=tmp_path / "staging", archive_dir=tmp_path / "archive"
    )
    scrape = store.save_content(s100, b"<html><body>garbage</body></html>", scraped_at=T0)
    plan = ScrapedBillPlan(store, content_service)

    with pytest.raises(PipelineFailure) as excinfo:
        ReportEngine([plan], default_registry(), clock).run(SpotCheckRefType.LBDC_SCRAPED_BILL)

    assert isinstance(excinfo.value.cause, ParseError)
    assert [pending.file_name for pending in store.list_incoming()] == [scrape.file_name]
    assert scrape.file_path.exists()


def test_scraped_bill_plan_without_scrapes(tmp_path: Path, content_service) -> None:
    store = ReferenceStore(
        tmp_path / "db.sqlite", staging_dir=tmp_path / "staging", archive_dir=tmp_path / "archive"
    )

    with pytest.raises(ReferenceDataNotFound):
        ScrapedBillPlan(store, content_service).load_reference(None, None)


class FakePeer:
    base_url = "http://peer.example"
    page_size = 2

    def __init__(self, bills) -> None:
        self.bills = bills
        self.pages: list[int] = []

    def list_bill_ids(self, session, page):
        self.pages.append(page)
        ids = sorted(self.bills, key=str)
        return ids[(page - 1) * self.page_size : page * self.page_size]

    def get_bill(self, bill_id):
        return self.bills[bill_id]


def test_openleg_plan_pages_until_short_page(content_service, bill_factory, clock) -> None:
    ids = [BaseBillId(print_no=f"S{n}", session=2023) for n in (1, 2, 3)]
    peer = FakePeer({ids[0]: bill_factory("S1"), ids[1]: None, ids[2]: bill_factory("S3")})
    plan = OpenlegBillPlan(peer, content_service, session=2023, clock=clock)

    snapshot = plan.load_reference(None, None)

    assert peer.pages == [1, 2]
    assert snapshot.bill_ids == tuple(sorted(ids, key=str))
    assert [bill.print_no for page in snapshot.pages() for bill in plan.parse(page)] == ["S1", "S3"]


def test_openleg_plan_with_empty_peer(content_service, clock) -> None:
    plan = OpenlegBillPlan(FakePeer({}), content_service, session=2023, clock=clock)

    with pytest.raises(ReferenceDataNotFound):
        plan.load_reference(None, None)
