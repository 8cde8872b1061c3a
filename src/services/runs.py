"""Run a report end to end: generate, reconcile, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from schemas.internal.spotcheck import Report, SpotCheckRefType
from services.lifecycle import MismatchLifecycleManager, Reconciliation
from services.report_engine import ReportEngine
from spotcheck.errors import ReferenceDataNotFound, SpotcheckError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    reference_type: SpotCheckRefType
    report: Report | None = None
    reconciliation: Reconciliation | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.report is not None


class SpotcheckRunService:
    def __init__(
        self,
        engine: ReportEngine,
        lifecycle: MismatchLifecycleManager,
        reference_types: Iterable[SpotCheckRefType] | None = None,
        run_timeout: float | None = None,
    ) -> None:
        self._engine = engine
        self._lifecycle = lifecycle
        self._reference_types = list(reference_types or engine.reference_types)
        self._run_timeout = run_timeout

    @property
    def engine(self) -> ReportEngine:
        return self._engine

    @property
    def reference_types(self) -> list[SpotCheckRefType]:
        return list(self._reference_types)

    def run_report(
        self,
        ref_type: SpotCheckRefType,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> RunResult:
        """Nothing is persisted unless the whole run succeeds.

        Reference data is consumed only once the report is saved.
        """
        reconciliations: list[Reconciliation] = []

        def persist(report: Report) -> None:
            reconciliations.append(self._lifecycle.process(report))

        report = self._engine.run(
            ref_type,
            start,
            end,
            timeout=timeout if timeout is not None else self._run_timeout,
            persist=persist,
        )
        return RunResult(
            reference_type=ref_type, report=report, reconciliation=reconciliations[0]
        )

    def run_reports(self, ref_types: Iterable[SpotCheckRefType]) -> list[RunResult]:
        """Run several reference types; one failing does not stop the rest."""
        results = []
        for ref_type in ref_types:
            try:
                results.append(self.run_report(ref_type))
            except ReferenceDataNotFound as exc:
                logger.info("No new reference data for %s: %s", ref_type.value, exc)
                results.append(RunResult(reference_type=ref_type, error=str(exc)))
            except SpotcheckError as exc:
                logger.error("Spot-check report %s failed: %s", ref_type.value, exc)
                results.append(RunResult(reference_type=ref_type, error=str(exc)))
        return results

    def run_weekly_reports(self) -> list[RunResult]:
        return self.run_reports(self._reference_types)


__all__ = ["RunResult", "SpotcheckRunService"]
