"""Scrape dispatch: pull bills off the scrape queue and stage their LRS pages."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Literal

import requests

from core.config import Settings
from parsers.bill_scrape_html import BillScrapeHtmlParser
from persistence.contracts import Scraper
from persistence.models import ScrapeFile, ScrapeQueueEntry
from persistence.reference_store import ReferenceStore
from schemas.internal.keys import BaseBillId
from services.http import build_session
from spotcheck.errors import QueueEmpty, ReferenceSourceUnavailable

logger = logging.getLogger(__name__)

DispatchStatus = Literal["saved", "dead_lettered", "in_flight", "interrupted"]


class LrsBillScraper:
    """Fetches the public LRS bill page for a base bill id."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self._base_url = settings.lrs_base_url
        self._timeout = settings.http_timeout_sec
        self._session = session or build_session()
        self._parser = BillScrapeHtmlParser()

    def fetch(self, key: BaseBillId) -> bytes:
        params = {"bn": key.print_no, "term": str(key.session)}
        try:
            response = self._session.get(self._base_url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ReferenceSourceUnavailable("LRS", f"Fetching {key} failed: {exc}", exc) from exc
        if self._parser.is_lrs_outage(response.text):
            raise ReferenceSourceUnavailable("LRS", f"Outage page returned for {key}")
        return response.content


@dataclass(frozen=True)
class DispatchOutcome:
    key: BaseBillId
    status: DispatchStatus
    attempts: int = 0
    scrape_file: ScrapeFile | None = None
    error: str | None = None


class ScrapeDispatcher:
    def __init__(
        self,
        store: ReferenceStore,
        scraper: Scraper,
        settings: Settings,
        *,
        rng: random.Random | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._store = store
        self._scraper = scraper
        self._max_attempts = max(1, settings.scrape_max_attempts)
        self._backoff_base = settings.scrape_backoff_base_sec
        self._backoff_max = settings.scrape_backoff_max_sec
        self._poll_interval = settings.scrape_poll_interval_sec
        self._rng = rng or random.Random()
        self._stop = stop_event or threading.Event()
        self._in_flight: set[BaseBillId] = set()
        self._lock = threading.Lock()

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def backoff_delay(self, attempt: int) -> float:
        """Jittered exponential delay before retry number ``attempt``."""
        delay = min(self._backoff_max, self._backoff_base * 2 ** (attempt - 1))
        return delay * self._rng.uniform(0.5, 1.5)

    def dispatch_once(self) -> DispatchOutcome | None:
        """Scrape the queue head. Returns None when the queue is empty."""
        try:
            entry = self._store.dequeue_head()
        except QueueEmpty:
            return None
        key = entry.key
        with self._lock:
            if key in self._in_flight:
                return DispatchOutcome(key=key, status="in_flight")
            self._in_flight.add(key)
        try:
            return self._scrape(entry)
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def _scrape(self, entry: ScrapeQueueEntry) -> DispatchOutcome:
        key = entry.key
        attempt = 0
        while True:
            attempt += 1
            try:
                content = self._scraper.fetch(key)
                scrape_file = self._store.save_content(key, content)
            except Exception as exc:
                if attempt >= self._max_attempts:
                    self._store.dead_letter(key, attempts=attempt, error=_describe(exc))
                    return DispatchOutcome(
                        key=key, status="dead_lettered", attempts=attempt, error=_describe(exc)
                    )
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Scrape of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    key,
                    attempt,
                    self._max_attempts,
                    delay,
                    _describe(exc),
                )
                if self._stop.wait(delay):
                    return DispatchOutcome(
                        key=key, status="interrupted", attempts=attempt, error=_describe(exc)
                    )
                continue
            if not self._store.remove(key, entry.added_datetime):
                logger.info("%s was re-enqueued during its scrape; keeping the new request", key)
            return DispatchOutcome(
                key=key, status="saved", attempts=attempt, scrape_file=scrape_file
            )

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        if stop_event is not None:
            self._stop = stop_event
        logger.info("Scrape dispatcher started")
        while not self._stop.is_set():
            try:
                outcome = self.dispatch_once()
            except Exception:
                logger.exception("Scrape dispatch failed")
                outcome = None
            if outcome is None or outcome.status == "in_flight":
                self._stop.wait(self._poll_interval)
        logger.info("Scrape dispatcher stopped")

    def stop(self) -> None:
        self._stop.set()


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


__all__ = ["DispatchOutcome", "LrsBillScraper", "ScrapeDispatcher"]
