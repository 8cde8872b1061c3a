import time
from datetime import datetime, timedelta, timezone

from schemas.internal.spotcheck import SpotCheckRefType
from services.runs import RunResult
from services.scheduler import SpotcheckScheduler
from spotcheck.errors import PipelineCancelled, ReferenceDataNotFound

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)

SITE = SpotCheckRefType.SENATE_SITE_BILLS
CAL = SpotCheckRefType.SENATE_SITE_CALENDAR


class FakeEngine:
    def __init__(self) -> None:
        self.cancelled: list[SpotCheckRefType] = []

    def cancel(self, ref_type):
        self.cancelled.append(ref_type)
        return False


class FakeRunService:
    def __init__(self, reference_types, errors=None) -> None:
        self.reference_types = list(reference_types)
        self.errors = errors or {}
        self.engine = FakeEngine()
        self.calls: list[SpotCheckRefType] = []
        self.during_run = None

    def run_report(self, ref_type, timeout=None):
        self.calls.append(ref_type)
        if self.during_run is not None:
            self.during_run(ref_type)
        if ref_type in self.errors:
            raise self.errors[ref_type]
        return RunResult(reference_type=ref_type, report=object())


def test_trigger_records_result(settings, clock) -> None:
    runs = FakeRunService([SITE])
    scheduler = SpotcheckScheduler(settings, runs, clock=clock)

    assert scheduler.trigger(SITE)

    assert scheduler.last_run(SITE) == T0
    assert scheduler.last_result(SITE).succeeded
    assert not scheduler.is_running(SITE)


def test_trigger_is_dropped_while_running(settings, clock) -> None:
    runs = FakeRunService([SITE])
    scheduler = SpotcheckScheduler(settings, runs, clock=clock)
    nested = []
    runs.during_run = lambda ref_type: nested.append(
        (scheduler.is_running(ref_type), scheduler.trigger(ref_type))
    )

    assert scheduler.trigger(SITE)
    assert nested == [(True, False)]
    assert runs.calls == [SITE]


def test_failed_runs_are_kept_as_results(settings, clock) -> None:
    runs = FakeRunService(
        [SITE, CAL],
        errors={SITE: ReferenceDataNotFound(SITE), CAL: PipelineCancelled("deadline")},
    )
    scheduler = SpotcheckScheduler(settings, runs, clock=clock)

    assert scheduler.run_due() == [SITE, CAL]

    assert not scheduler.last_result(SITE).succeeded
    assert "deadline" in scheduler.last_result(CAL).error


def test_run_due_respects_interval_and_toggle(settings, clock) -> None:
    settings.spotcheck_interval_sec = 3600
    runs = FakeRunService([SITE])
    scheduler = SpotcheckScheduler(settings, runs, clock=clock)

    assert scheduler.run_due() == [SITE]
    assert scheduler.run_due(T0 + timedelta(minutes=30)) == []
    assert not scheduler.is_due(SITE, T0 + timedelta(minutes=59))
    assert scheduler.is_due(SITE, T0 + timedelta(hours=1))

    scheduler.set_enabled(False)
    assert scheduler.run_due(T0 + timedelta(hours=2)) == []
    assert settings.spotcheck_scheduled is False
    assert scheduler.trigger(SITE)
    assert runs.calls == [SITE, SITE]


def test_start_and_stop_background_loop(settings, clock) -> None:
    runs = FakeRunService([SITE])
    scheduler = SpotcheckScheduler(settings, runs, clock=clock)

    scheduler.start()
    try:
        for _ in range(200):
            if runs.calls:
                break
            time.sleep(0.01)
    finally:
        scheduler.stop()

    assert runs.calls[:1] == [SITE]
    assert runs.engine.cancelled == [SITE]
