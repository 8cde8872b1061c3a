"""Staged bounded-queue executor.

A pipeline is a linear chain of tasks. Task ``i`` takes one item and yields
zero or more items for task ``i + 1``. Each task runs on its own fixed
thread pool and reads from its own bounded queue, so a slow stage applies
backpressure to everything upstream of it.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from spotcheck.errors import PipelineCancelled, PipelineFailure

logger = logging.getLogger(__name__)

Task = Callable[[Any], Iterable[Any] | None]

_POLL_SEC = 0.05
_END = object()


@dataclass(frozen=True)
class StageSpec:
    fn: Task
    name: str
    workers: int
    queue_size: int


class PipelineBuilder:
    """Collects stage definitions; ``build()`` freezes them into a pipeline."""

    def __init__(self) -> None:
        self._stages: list[StageSpec] = []

    def add_task(
        self,
        fn: Task,
        *,
        queue_size: int = 100,
        workers: int = 1,
        name: str | None = None,
    ) -> "PipelineBuilder":
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")
        stage_name = name or getattr(fn, "__name__", f"stage{len(self._stages)}")
        self._stages.append(StageSpec(fn, stage_name, workers, queue_size))
        return self

    def build(self) -> "Pipeline":
        if not self._stages:
            raise ValueError("A pipeline needs at least one task")
        return Pipeline(tuple(self._stages))


class Pipeline:
    def __init__(self, stages: tuple[StageSpec, ...]) -> None:
        self._stages = stages
        self._inputs: list[Any] = []
        self._started = False

    @property
    def stages(self) -> tuple[StageSpec, ...]:
        return self._stages

    def add_input(self, items: Iterable[Any]) -> "Pipeline":
        if self._started:
            raise RuntimeError("Cannot add input to a running pipeline")
        self._inputs.extend(items)
        return self

    def run(self) -> "PipelineHandle":
        if self._started:
            raise RuntimeError("Pipeline has already been run")
        self._started = True
        run = _PipelineRun(self._stages, list(self._inputs))
        run.start()
        return run.handle


class PipelineHandle:
    """Completion handle for a running pipeline."""

    def __init__(self, run: "_PipelineRun") -> None:
        self._run = run

    def result(self, timeout: float | None = None) -> tuple[Any, ...]:
        """Wait for the tail outputs.

        Raises ``PipelineCancelled`` after ``cancel()``, ``PipelineFailure``
        when a task raised, and ``TimeoutError`` if ``timeout`` elapses first.
        """
        if not self._run.finished.wait(timeout):
            raise TimeoutError(f"Pipeline did not finish within {timeout} seconds")
        if self._run.was_cancelled:
            raise PipelineCancelled("Pipeline was cancelled")
        error = self._run.error
        if error is not None:
            raise PipelineFailure(error) from error
        return tuple(self._run.outputs)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        if not self._run.finished.wait(timeout):
            raise TimeoutError(f"Pipeline did not finish within {timeout} seconds")
        return self._run.error

    def cancel(self) -> bool:
        return self._run.cancel()

    def cancelled(self) -> bool:
        return self._run.was_cancelled

    def done(self) -> bool:
        return self._run.finished.is_set()


class _PipelineRun:
    def __init__(self, stages: tuple[StageSpec, ...], inputs: list[Any]) -> None:
        self._stages = stages
        self._inputs = inputs
        self._queues: list[queue.Queue] = [queue.Queue(maxsize=s.queue_size) for s in stages]
        self._remaining = [stage.workers for stage in stages]
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self.finished = threading.Event()
        self.outputs: list[Any] = []
        self.error: BaseException | None = None
        self.was_cancelled = False
        self.handle = PipelineHandle(self)

    def start(self) -> None:
        executors: list[ThreadPoolExecutor] = []
        futures: list[Future] = []
        for index, stage in enumerate(self._stages):
            executor = ThreadPoolExecutor(
                max_workers=stage.workers, thread_name_prefix=f"pipeline-{stage.name}"
            )
            executors.append(executor)
            futures.extend(executor.submit(self._work, index) for _ in range(stage.workers))
        feeder = threading.Thread(target=self._feed, name="pipeline-feeder", daemon=True)
        feeder.start()
        coordinator = threading.Thread(
            target=self._coordinate,
            args=(feeder, executors, futures),
            name="pipeline-coordinator",
            daemon=True,
        )
        coordinator.start()
        logger.debug(
            "Started pipeline with %d stages and %d inputs", len(self._stages), len(self._inputs)
        )

    def cancel(self) -> bool:
        with self._state_lock:
            if self.finished.is_set():
                return False
            self.was_cancelled = True
            self._stop.set()
        logger.info("Pipeline cancelled")
        return True

    def _fail(self, stage: StageSpec, exc: BaseException) -> None:
        with self._state_lock:
            if self.error is None and not self.was_cancelled:
                self.error = exc
                logger.error("Pipeline stage %s failed: %s", stage.name, exc)
            self._stop.set()

    def _put(self, target: queue.Queue, item: Any) -> bool:
        while not self._stop.is_set():
            try:
                target.put(item, timeout=_POLL_SEC)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, source: queue.Queue) -> Any:
        while not self._stop.is_set():
            try:
                return source.get(timeout=_POLL_SEC)
            except queue.Empty:
                continue
        return _END

    def _feed(self) -> None:
        head = self._queues[0]
        for item in self._inputs:
            if not self._put(head, item):
                return
        for _ in range(self._stages[0].workers):
            if not self._put(head, _END):
                return

    def _work(self, index: int) -> None:
        stage = self._stages[index]
        source = self._queues[index]
        is_tail = index == len(self._stages) - 1
        try:
            while True:
                item = self._get(source)
                if item is _END:
                    break
                try:
                    produced = stage.fn(item)
                    for output in produced or ():
                        if self._stop.is_set():
                            break
                        if is_tail:
                            with self._state_lock:
                                self.outputs.append(output)
                        elif not self._put(self._queues[index + 1], output):
                            break
                except Exception as exc:
                    self._fail(stage, exc)
                    break
        finally:
            self._stage_worker_done(index)

    def _stage_worker_done(self, index: int) -> None:
        with self._state_lock:
            self._remaining[index] -= 1
            last = self._remaining[index] == 0
        if last and index + 1 < len(self._stages):
            for _ in range(self._stages[index + 1].workers):
                if not self._put(self._queues[index + 1], _END):
                    return

    def _coordinate(
        self,
        feeder: threading.Thread,
        executors: list[ThreadPoolExecutor],
        futures: list[Future],
    ) -> None:
        wait(futures)
        feeder.join()
        for executor in executors:
            executor.shutdown(wait=True)
        if self._stop.is_set():
            self._drain()
            with self._state_lock:
                self.outputs.clear()
        with self._state_lock:
            self.finished.set()
        logger.debug("Pipeline finished (cancelled=%s, failed=%s)", self.was_cancelled, self.error)

    def _drain(self) -> None:
        for pending in self._queues:
            while True:
                try:
                    pending.get_nowait()
                except queue.Empty:
                    break


__all__ = ["Pipeline", "PipelineBuilder", "PipelineHandle", "StageSpec"]
