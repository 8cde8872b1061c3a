# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.config import Settings
from schemas.internal.content import Bill, BillAmendment
from schemas.internal.keys import BaseBillId, BillId

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; each call returns the current instant."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeContentService:
    """In-memory content data service keyed by base key."""

    def __init__(self, items=None, *, page_size: int = 100) -> None:
        self.items = dict(items or {})
        self.page_size = page_size
        self.failing: set = set()

    def _base(self, key):
        return key.base_bill_id if isinstance(key, BillId) else key

    def get_content(self, key):
        base = self._base(key)
        if base in self.failing:
            raise OSError(f"content store unavailable for {base}")
        return self.items.get(base)

    def list_keys(self, session, page):
        keys = sorted(
            (key for key in self.items if getattr(key, "session", getattr(key, "year", None)) == session),
            key=str,
        )
        start = (page - 1) * self.page_size
        return keys[start : start + self.page_size]

    def get_publish_status(self, key):
        content = self.get_content(key)
        if content is None:
            return False
        if isinstance(content, Bill):
            return content.is_published(key.version if isinstance(key, BillId) else None)
        return True


def make_bill(print_no: str = "S100", session: int = 2023, **fields) -> Bill:
    amendments = fields.pop("amendments", None) or {"": BillAmendment(version="")}
    return Bill(print_no=print_no, session=session, amendments=amendments, **fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def content_service() -> FakeContentService:
    return FakeContentService()


@pytest.fixture
def bill_factory():
    return make_bill


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        scraped_staging_dir=tmp_path / "staging",
        archive_dir=tmp_path / "archive",
        spotcheck_db_path=tmp_path / "spotcheck.sqlite",
        sensite_bill_loader_workers=2,
        spotcheck_scheduled=True,
        scrape_max_attempts=3,
        scrape_backoff_base_sec=0.0,
        scrape_backoff_max_sec=0.0,
        scrape_poll_interval_sec=0.01,
        spotcheck_tick_sec=0.01,
    )


@pytest.fixture
def s100() -> BaseBillId:
    return BaseBillId.parse("S100-2023")


class FakeScraper:
    """Returns canned LRS pages; exceptions in ``pages`` are raised instead."""

    def __init__(self, *pages) -> None:
        self.pages = list(pages)
        self.fetched: list[BaseBillId] = []

    def fetch(self, key):
        self.fetched.append(key)
        page = self.pages.pop(0) if self.pages else b"<html></html>"
        if isinstance(page, Exception):
            raise page
        return page


def _stage_dump(source, ref_type, records, *, at: str = "20240304T120000", notes=None) -> None:
    source.stage_fragment(
        ref_type,
        {
            "year": 2024,
            "sequence": 1,
            "total_fragments": 1,
            "dump_datetime": at,
            "notes": notes,
            "records": records,
        },
    )


@pytest.fixture
def dump_source(settings):
    from persistence.fs_store import FsDumpSource

    return FsDumpSource.from_settings(settings)


@pytest.fixture
def stage_dump(dump_source):
    """Stage a single-fragment dump: ``stage_dump(ref_type, records, at=...)``."""

    def _stage(ref_type, records, **kwargs):
        _stage_dump(dump_source, ref_type, records, **kwargs)

    return _stage


@pytest.fixture
def scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture
def spotcheck_service(settings, dump_source, content_service, scraper, clock):
    """Service wired like production, over temp stores and in-memory content."""
    from checkers.registry import default_registry
    from persistence.reference_store import ReferenceStore
    from persistence.report_store import SqliteReportStore
    from services.plans import ScrapedBillPlan, SenateSiteBillPlan, SenateSiteCalendarPlan
    from services.report_engine import ReportEngine
    from services.scraping import ScrapeDispatcher
    from services.spotcheck import SpotcheckService

    reference_store = ReferenceStore(
        settings.spotcheck_db_path,
        staging_dir=settings.scrape_staging_bill_dir,
        archive_dir=settings.scrape_archive_bill_dir,
        clock=clock,
    )
    engine = ReportEngine(
        [
            SenateSiteBillPlan(dump_source, content_service, settings),
            SenateSiteCalendarPlan(dump_source, content_service, settings),
            ScrapedBillPlan(reference_store, content_service, settings=settings),
        ],
        default_registry(),
        clock=clock,
    )
    dispatcher = ScrapeDispatcher(reference_store, scraper, settings)
    return SpotcheckService(
        settings,
        SqliteReportStore(settings.spotcheck_db_path),
        reference_store,
        engine,
        dispatcher,
    )
