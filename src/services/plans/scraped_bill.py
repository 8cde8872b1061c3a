"""Report plan for bill pages scraped from LRS."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from parsers.bill_scrape_html import BillScrapeHtmlParser, parse_scrape_file_name
from persistence.contracts import ContentDataService
from persistence.models import ScrapeFile
from persistence.reference_store import ReferenceStore
from schemas.internal.content import Bill
from schemas.internal.keys import BaseBillId
from schemas.internal.references import BillScrapeReference
from schemas.internal.spotcheck import SpotCheckRefType
from services.plans.senate_site import in_window
from services.report_engine import ReportPlan
from spotcheck.errors import ParseError, ReferenceDataNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapeBatch:
    """Incoming scrape files selected for one run.

    ``files`` holds the newest scrape per bill; ``superseded`` holds older
    scrapes of the same bills, archived alongside without being checked.
    """

    files: tuple[ScrapeFile, ...]
    superseded: tuple[ScrapeFile, ...] = ()

    @property
    def reference_datetime(self) -> datetime:
        return max(scrape_file.staged_datetime for scrape_file in self.files)


class ScrapedBillPlan(ReportPlan[ScrapeBatch, BillScrapeReference]):
    reference_type: ClassVar[SpotCheckRefType] = SpotCheckRefType.LBDC_SCRAPED_BILL

    def __init__(
        self,
        store: ReferenceStore,
        content_service: ContentDataService,
        parser: BillScrapeHtmlParser | None = None,
        settings=None,
    ) -> None:
        self._store = store
        self._content_service = content_service
        self._parser = parser or BillScrapeHtmlParser()
        self.configure(settings)

    def load_reference(self, start: datetime | None, end: datetime | None) -> ScrapeBatch:
        latest: dict[BaseBillId, ScrapeFile] = {}
        superseded: list[ScrapeFile] = []
        for scrape_file in self._store.list_incoming():
            if not in_window(scrape_file.staged_datetime, start, end):
                continue
            try:
                base_bill_id, _ = parse_scrape_file_name(scrape_file.file_name)
            except ParseError:
                logger.warning("Ignoring unrecognized scrape file %s", scrape_file.file_name)
                continue
            previous = latest.get(base_bill_id)
            if previous is not None:
                superseded.append(previous)
            latest[base_bill_id] = scrape_file
        if not latest:
            raise ReferenceDataNotFound(self.reference_type, "No incoming scrape files")
        return ScrapeBatch(files=tuple(latest.values()), superseded=tuple(superseded))

    def reference_datetime(self, artifact: ScrapeBatch) -> datetime:
        return artifact.reference_datetime

    def notes(self, artifact: ScrapeBatch) -> str | None:
        return f"{len(artifact.files)} scraped bills"

    def fragments(self, artifact: ScrapeBatch) -> tuple[ScrapeFile, ...]:
        return artifact.files

    def parse(self, scrape_file: ScrapeFile) -> list[BillScrapeReference]:
        try:
            return [self._parser.parse_file(scrape_file)]
        except ParseError:
            logger.error("Could not parse scrape file %s", scrape_file.file_name)
            raise

    def key_of(self, record: BillScrapeReference) -> BaseBillId:
        return record.base_bill_id

    def load_content(self, key: BaseBillId) -> Bill | None:
        return self._content_service.get_content(key)

    def is_published(self, key: BaseBillId) -> bool:
        return self._content_service.get_publish_status(key)

    def finalize(self, artifact: ScrapeBatch, succeeded: bool) -> None:
        if not succeeded:
            logger.warning("Leaving %d scrape files staged for retry", len(artifact.files))
            return
        for scrape_file in (*artifact.files, *artifact.superseded):
            if scrape_file.file_path.exists():
                self._store.archive(scrape_file)


__all__ = ["ScrapeBatch", "ScrapedBillPlan"]
