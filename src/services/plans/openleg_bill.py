"""Report plan comparing local bills against a peer openleg instance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, ClassVar

from persistence.contracts import ContentDataService
from persistence.sqlite_store import utc_now
from schemas.internal.content import Bill
from schemas.internal.keys import BaseBillId, session_year_of
from schemas.internal.spotcheck import Key, SpotCheckRefType
from services.openleg import OpenlegClient
from services.plans.senate_site import list_all_keys
from services.report_engine import ReportPlan
from spotcheck.errors import ReferenceDataNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerSnapshot:
    session: int
    reference_datetime: datetime
    bill_ids: tuple[BaseBillId, ...]
    page_size: int

    def pages(self) -> list[tuple[BaseBillId, ...]]:
        return [
            self.bill_ids[index : index + self.page_size]
            for index in range(0, len(self.bill_ids), self.page_size)
        ]


class OpenlegBillPlan(ReportPlan[PeerSnapshot, Bill]):
    """The peer instance is live, so the reference is taken at load time
    and the ``start``/``end`` window does not apply."""

    reference_type: ClassVar[SpotCheckRefType] = SpotCheckRefType.OPENLEG_BILL

    def __init__(
        self,
        peer: OpenlegClient,
        content_service: ContentDataService,
        settings=None,
        *,
        session: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._peer = peer
        self._content_service = content_service
        self._clock = clock
        if session is None and settings is not None:
            session = settings.spotcheck_session_year
        self._session = session
        self.configure(settings)

    def load_reference(self, start: datetime | None, end: datetime | None) -> PeerSnapshot:
        reference_datetime = self._clock()
        session = self._session or session_year_of(reference_datetime.year)
        bill_ids: list[BaseBillId] = []
        page = 1
        while True:
            batch = self._peer.list_bill_ids(session, page)
            if not batch:
                break
            bill_ids.extend(batch)
            if len(batch) < self._peer.page_size:
                break
            page += 1
        if not bill_ids:
            raise ReferenceDataNotFound(
                self.reference_type, f"Peer at {self._peer.base_url} lists no bills for {session}"
            )
        logger.info("Peer lists %d bills for session %d", len(bill_ids), session)
        return PeerSnapshot(
            session=session,
            reference_datetime=reference_datetime,
            bill_ids=tuple(bill_ids),
            page_size=self._peer.page_size,
        )

    def reference_datetime(self, artifact: PeerSnapshot) -> datetime:
        return artifact.reference_datetime

    def notes(self, artifact: PeerSnapshot) -> str | None:
        return f"peer {self._peer.base_url}, session {artifact.session}"

    def fragments(self, artifact: PeerSnapshot) -> list[tuple[BaseBillId, ...]]:
        return artifact.pages()

    def parse(self, page: tuple[BaseBillId, ...]) -> list[Bill]:
        bills = []
        for bill_id in page:
            bill = self._peer.get_bill(bill_id)
            if bill is None:
                logger.warning("Peer listed %s but has no record of it", bill_id)
                continue
            bills.append(bill)
        return bills

    def key_of(self, record: Bill) -> BaseBillId:
        return record.base_bill_id

    def load_content(self, key: BaseBillId) -> Bill | None:
        return self._content_service.get_content(key)

    def universe(self, artifact: PeerSnapshot) -> set[Key]:
        return list_all_keys(self._content_service, artifact.session)

    def is_published(self, key: BaseBillId) -> bool:
        return self._content_service.get_publish_status(key)


__all__ = ["OpenlegBillPlan", "PeerSnapshot"]
