"""Report engine: one end-to-end audit run for one reference type."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ClassVar, Generic, Iterable, Mapping, TypeVar

from checkers.registry import CheckerRegistry
from persistence.sqlite_store import utc_now
from pipelines.runtime import PipelineBuilder, PipelineHandle
from schemas.internal.spotcheck import (
    Key,
    Observation,
    ReferenceId,
    Report,
    ReportId,
    SpotCheckRefType,
)
from spotcheck.errors import PipelineCancelled, ReferenceSourceUnavailable

logger = logging.getLogger(__name__)

ArtifactT = TypeVar("ArtifactT")
RecordT = TypeVar("RecordT")


@dataclass(frozen=True)
class CheckPair:
    key: Key
    reference: Any
    content: Any | None


class ReportPlan(ABC, Generic[ArtifactT, RecordT]):
    """Everything the engine needs to know about one reference type.

    The engine owns ordering and bookkeeping; a plan supplies I/O and the
    shape of the key universe.
    """

    reference_type: ClassVar[SpotCheckRefType]

    ref_queue_size: int = 100
    data_queue_size: int = 200
    loader_workers: int = 2

    def configure(self, settings) -> None:
        if settings is None:
            return
        self.ref_queue_size = settings.sensite_bill_ref_queue_size
        self.data_queue_size = settings.sensite_bill_data_queue_size
        self.loader_workers = settings.sensite_bill_loader_workers

    @abstractmethod
    def load_reference(self, start: datetime | None, end: datetime | None) -> ArtifactT:
        """Most recent complete artifact in the window; raises ReferenceDataNotFound."""

    @abstractmethod
    def reference_datetime(self, artifact: ArtifactT) -> datetime: ...

    def notes(self, artifact: ArtifactT) -> str | None:
        return None

    @abstractmethod
    def fragments(self, artifact: ArtifactT) -> Iterable[Any]: ...

    @abstractmethod
    def parse(self, fragment: Any) -> Iterable[RecordT]: ...

    @abstractmethod
    def key_of(self, record: RecordT) -> Key: ...

    @abstractmethod
    def load_content(self, key: Key) -> Any | None: ...

    def universe(self, artifact: ArtifactT) -> set[Key] | None:
        """Base keys the audit should cover, or None when only the reference decides."""
        return None

    def base_key(self, key: Key) -> Key:
        return key

    def expand(self, base_key: Key, content: Any) -> Iterable[Key]:
        """Child keys of a checked base key, derived from already loaded content."""
        return [base_key]

    def children_of(self, base_key: Key) -> Iterable[Key]:
        """Child keys of a base key nothing in the reference referred to."""
        return [base_key]

    def is_published(self, key: Key) -> bool:
        return True

    def finalize(self, artifact: ArtifactT, succeeded: bool) -> None:
        """Mark the artifact as consumed."""


class ReportEngine:
    def __init__(
        self,
        plans: Mapping[SpotCheckRefType, ReportPlan] | Iterable[ReportPlan],
        registry: CheckerRegistry,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if isinstance(plans, Mapping):
            self._plans = dict(plans)
        else:
            self._plans = {plan.reference_type: plan for plan in plans}
        self._registry = registry
        self._clock = clock
        self._run_locks = {ref_type: threading.Lock() for ref_type in self._plans}
        self._active: dict[SpotCheckRefType, PipelineHandle] = {}
        self._active_lock = threading.Lock()

    @property
    def reference_types(self) -> list[SpotCheckRefType]:
        return sorted(self._plans, key=lambda ref_type: ref_type.value)

    def plan(self, ref_type: SpotCheckRefType) -> ReportPlan:
        try:
            return self._plans[ref_type]
        except KeyError as exc:
            raise ReferenceSourceUnavailable(
                ref_type.ref_name, f"No reference source is configured for {ref_type.value}"
            ) from exc

    def is_running(self, ref_type: SpotCheckRefType) -> bool:
        with self._active_lock:
            return ref_type in self._active

    def cancel(self, ref_type: SpotCheckRefType) -> bool:
        with self._active_lock:
            handle = self._active.get(ref_type)
        return handle.cancel() if handle is not None else False

    def run(
        self,
        ref_type: SpotCheckRefType,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        timeout: float | None = None,
        persist: Callable[[Report], Any] | None = None,
    ) -> Report:
        """Run one audit and return the report.

        Runs of the same reference type are serialized. The reference
        artifact is finalized only after ``persist`` returns; when
        persisting raises, the artifact stays pending for the next run.
        """
        plan = self.plan(ref_type)
        checker = self._registry.get(ref_type)
        with self._run_locks[ref_type]:
            artifact = plan.load_reference(start, end)
            try:
                report = self._generate(ref_type, plan, checker, artifact, timeout)
            except BaseException:
                plan.finalize(artifact, False)
                raise
            if persist is not None:
                persist(report)
            plan.finalize(artifact, True)
        logger.info(
            "Generated %s report with %d observations and %d mismatches",
            ref_type.value,
            len(report.observations),
            report.mismatch_count(),
        )
        return report

    def _generate(
        self,
        ref_type: SpotCheckRefType,
        plan: ReportPlan,
        checker,
        artifact: Any,
        timeout: float | None,
    ) -> Report:
        reference_id = ReferenceId(
            reference_type=ref_type, reference_datetime=plan.reference_datetime(artifact)
        )
        # Base keys with no checked child yet, and child keys not yet checked.
        unchecked_base: set[Key] = set(plan.universe(artifact) or ())
        unchecked: set[Key] = set()
        tracking = threading.Lock()

        def load(record: Any) -> list[CheckPair]:
            key = plan.key_of(record)
            try:
                content = plan.load_content(key)
            except Exception as exc:
                logger.warning("Could not load content for %s: %s", key, exc)
                content = None
            return [CheckPair(key=key, reference=record, content=content)]

        def check(pair: CheckPair) -> list[Observation]:
            observed_at = self._clock()
            if pair.content is None:
                observation = Observation.observe_missing(reference_id, pair.key, observed_at)
            else:
                observation = Observation(
                    reference_id=reference_id, key=pair.key, observed_datetime=observed_at
                )
                checker.check(pair.content, pair.reference, observation)
            with tracking:
                if pair.content is not None:
                    base = plan.base_key(pair.key)
                    if base in unchecked_base:
                        unchecked_base.discard(base)
                        unchecked.update(plan.expand(base, pair.content))
                unchecked.discard(pair.key)
            return [observation]

        pipeline = (
            PipelineBuilder()
            .add_task(plan.parse, queue_size=plan.ref_queue_size, name="parse")
            .add_task(
                load,
                queue_size=plan.data_queue_size,
                workers=plan.loader_workers,
                name="load",
            )
            .add_task(check, queue_size=plan.data_queue_size, name="check")
            .build()
            .add_input(plan.fragments(artifact))
        )
        handle = pipeline.run()
        with self._active_lock:
            self._active[ref_type] = handle
        try:
            try:
                observations = handle.result(timeout)
            except TimeoutError as exc:
                handle.cancel()
                raise PipelineCancelled(
                    f"{ref_type.value} report exceeded its {timeout}s deadline"
                ) from exc
        finally:
            with self._active_lock:
                self._active.pop(ref_type, None)

        report = Report(
            report_id=ReportId(
                reference_type=ref_type,
                reference_datetime=reference_id.reference_datetime,
                report_datetime=self._clock(),
            ),
            notes=plan.notes(artifact),
        )
        report.add_observations(observations)
        self._add_unchecked(plan, report, unchecked_base, unchecked)
        return report

    def _add_unchecked(
        self,
        plan: ReportPlan,
        report: Report,
        unchecked_base: set[Key],
        unchecked: set[Key],
    ) -> None:
        leftovers = set(unchecked)
        for base in unchecked_base:
            leftovers.update(plan.children_of(base))
        missing = 0
        for key in sorted(leftovers, key=str):
            if key in report.observations:
                continue
            if plan.is_published(key):
                report.add_ref_missing(key)
                missing += 1
            else:
                report.add_empty(key)
        if leftovers:
            logger.info(
                "%d unchecked keys for %s, %d published and missing from the reference",
                len(leftovers),
                report.reference_type.value,
                missing,
            )


__all__ = ["CheckPair", "ReportEngine", "ReportPlan"]
