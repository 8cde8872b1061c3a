"""Periodic spot-check audits and the background scrape dispatcher."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from core.config import Settings
from persistence.sqlite_store import utc_now
from schemas.internal.spotcheck import SpotCheckRefType
from services.runs import RunResult, SpotcheckRunService
from services.scraping import ScrapeDispatcher
from spotcheck.errors import ReferenceDataNotFound, SpotcheckError

logger = logging.getLogger(__name__)


class SpotcheckScheduler:
    """Runs each configured reference type once per interval.

    Only one run per reference type may be in flight; a trigger that finds
    one running is dropped. Periodic runs are skipped while the scheduler
    is disabled, manual triggers are not.
    """

    def __init__(
        self,
        settings: Settings,
        run_service: SpotcheckRunService,
        dispatcher: ScrapeDispatcher | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._run_service = run_service
        self._dispatcher = dispatcher
        self._clock = clock
        self._interval = timedelta(seconds=settings.spotcheck_interval_sec)
        self._locks: dict[SpotCheckRefType, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._last_run: dict[SpotCheckRefType, datetime] = {}
        self._last_results: dict[SpotCheckRefType, RunResult] = {}
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def reference_types(self) -> list[SpotCheckRefType]:
        return self._run_service.reference_types

    def is_enabled(self) -> bool:
        return self._settings.spotcheck_scheduled

    def set_enabled(self, enabled: bool) -> None:
        self._settings.spotcheck_scheduled = enabled
        logger.info("Spot-check scheduling %s", "enabled" if enabled else "disabled")

    def is_running(self, ref_type: SpotCheckRefType) -> bool:
        return self._lock_for(ref_type).locked()

    def last_run(self, ref_type: SpotCheckRefType) -> datetime | None:
        return self._last_run.get(ref_type)

    def last_result(self, ref_type: SpotCheckRefType) -> RunResult | None:
        return self._last_results.get(ref_type)

    def is_due(self, ref_type: SpotCheckRefType, now: datetime) -> bool:
        last = self._last_run.get(ref_type)
        return last is None or now - last >= self._interval

    def trigger(self, ref_type: SpotCheckRefType) -> bool:
        """Run a report now unless one is already in flight for the type."""
        lock = self._lock_for(ref_type)
        if not lock.acquire(blocking=False):
            logger.info("A %s report is already running", ref_type.value)
            return False
        try:
            self._last_run[ref_type] = self._clock()
            self._last_results[ref_type] = self._run(ref_type)
        finally:
            lock.release()
        return True

    def run_due(self, now: datetime | None = None) -> list[SpotCheckRefType]:
        """Trigger every reference type whose interval has elapsed."""
        if not self.is_enabled():
            return []
        now = now or self._clock()
        started = []
        for ref_type in self.reference_types:
            if self.is_due(ref_type, now) and self.trigger(ref_type):
                started.append(ref_type)
        return started

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("Scheduler already running")
        self._stop.clear()
        self._threads.append(
            threading.Thread(target=self._loop, name="spotcheck-scheduler", daemon=True)
        )
        if self._dispatcher is not None:
            self._threads.append(
                threading.Thread(
                    target=self._dispatcher.run_forever,
                    args=(self._stop,),
                    name="scrape-dispatcher",
                    daemon=True,
                )
            )
        for thread in self._threads:
            thread.start()
        logger.info("Spot-check scheduler started for %s", [t.value for t in self.reference_types])

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        for ref_type in self.reference_types:
            self._run_service.engine.cancel(ref_type)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Spot-check scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_due()
            except Exception:
                logger.exception("Scheduled spot-check tick failed")
            self._stop.wait(self._settings.spotcheck_tick_sec)

    def _run(self, ref_type: SpotCheckRefType) -> RunResult:
        try:
            return self._run_service.run_report(
                ref_type, timeout=self._settings.spotcheck_run_timeout_sec
            )
        except ReferenceDataNotFound as exc:
            logger.info("No new reference data for %s: %s", ref_type.value, exc)
            return RunResult(reference_type=ref_type, error=str(exc))
        except SpotcheckError as exc:
            logger.error("Scheduled %s report failed: %s", ref_type.value, exc)
            return RunResult(reference_type=ref_type, error=str(exc))

    def _lock_for(self, ref_type: SpotCheckRefType) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(ref_type, threading.Lock())


__all__ = ["SpotcheckScheduler"]
