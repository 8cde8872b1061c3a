import threading

import pytest

from pipelines.runtime import PipelineBuilder
from spotcheck.errors import PipelineCancelled, PipelineFailure


def _split(text: str) -> list[str]:
    return list(text)


def test_every_output_reaches_the_tail() -> None:
    handle = (
        PipelineBuilder()
        .add_task(_split, queue_size=2, name="split")
        .add_task(lambda char: [char.upper()], queue_size=1, workers=3, name="upper")
        .build()
        .add_input(["abc", "de", ""])
        .run()
    )

    assert sorted(handle.result(timeout=5)) == ["A", "B", "C", "D", "E"]
    assert handle.done()
    assert not handle.cancelled()


def test_single_worker_chain_keeps_order() -> None:
    handle = (
        PipelineBuilder()
        .add_task(lambda n: [n * 2], queue_size=1)
        .add_task(lambda n: [n + 1], queue_size=1)
        .build()
        .add_input(range(20))
        .run()
    )

    assert list(handle.result(timeout=5)) == [n * 2 + 1 for n in range(20)]


def test_stage_error_fails_the_pipeline() -> None:
    def explode(n: int) -> list[int]:
        if n == 3:
            raise KeyError("boom")
        return [n]

    handle = PipelineBuilder().add_task(explode).build().add_input(range(10)).run()

    with pytest.raises(PipelineFailure) as info:
        handle.result(timeout=5)
    assert isinstance(info.value.cause, KeyError)


def test_cancel_releases_waiters() -> None:
    gate = threading.Event()

    def blocked(n: int) -> list[int]:
        gate.wait(5)
        return [n]

    handle = PipelineBuilder().add_task(blocked, queue_size=1).build().add_input(range(5)).run()

    assert handle.cancel()
    gate.set()
    with pytest.raises(PipelineCancelled):
        handle.result(timeout=5)
    assert handle.cancelled()
    assert handle.cancel() is False


def test_result_times_out_while_running() -> None:
    gate = threading.Event()
    handle = (
        PipelineBuilder()
        .add_task(lambda n: [gate.wait(5)])
        .build()
        .add_input([1])
        .run()
    )

    with pytest.raises(TimeoutError):
        handle.result(timeout=0.05)
    gate.set()
    assert handle.result(timeout=5) == (True,)


def test_builder_rejects_bad_stage_settings() -> None:
    with pytest.raises(ValueError):
        PipelineBuilder().add_task(_split, workers=0)
    with pytest.raises(ValueError):
        PipelineBuilder().add_task(_split, queue_size=0)
    with pytest.raises(ValueError):
        PipelineBuilder().build()


def test_pipeline_runs_only_once() -> None:
    pipeline = PipelineBuilder().add_task(_split).build().add_input(["a"])
    pipeline.run().result(timeout=5)

    with pytest.raises(RuntimeError):
        pipeline.run()
    with pytest.raises(RuntimeError):
        pipeline.add_input(["b"])
