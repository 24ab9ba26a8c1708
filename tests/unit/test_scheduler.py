from __future__ import annotations

import threading
import time

import pytest

from embed_bridge.errors import ExecutorError, InvalidArgumentError, PreprocessingError
from embed_bridge.scheduler import BatchScheduler, partition


class RecordingExecutor:
    def __init__(self, fail_on: str | None = None, delay_for=None) -> None:
        self.batches: list[list[str]] = []
        self._fail_on = fail_on
        self._delay_for = delay_for or (lambda batch: 0.0)
        self._lock = threading.Lock()

    def __call__(self, batch):
        with self._lock:
            self.batches.append(list(batch))
        time.sleep(self._delay_for(batch))
        if self._fail_on is not None and self._fail_on in batch:
            raise RuntimeError(f"cannot process {self._fail_on}")
        return [item.upper() for item in batch]


def identity(chunk):
    return list(chunk)


def test_partition_produces_ceil_chunks_in_order():
    assert partition(["a", "b", "c"], 2) == [["a", "b"], ["c"]]
    assert partition(list(range(6)), 3) == [[0, 1, 2], [3, 4, 5]]
    assert partition([], 4) == []


@pytest.mark.parametrize("n", [0, 1, 2, 5, 17])
@pytest.mark.parametrize("batch_size", [1, 2, 3, 64])
def test_output_count_and_order_match_input(n, batch_size):
    inputs = [f"item-{i}" for i in range(n)]
    output = BatchScheduler().run(inputs, batch_size, preprocess=identity, execute=RecordingExecutor())
    assert output == [item.upper() for item in inputs]


@pytest.mark.parametrize("batch_size", [0, -1])
def test_non_positive_batch_size_rejected(batch_size):
    with pytest.raises(InvalidArgumentError):
        BatchScheduler().run(["a"], batch_size, preprocess=identity, execute=RecordingExecutor())


def test_zero_batch_size_rejected_even_for_empty_input():
    with pytest.raises(InvalidArgumentError):
        BatchScheduler().run([], 0, preprocess=identity, execute=RecordingExecutor())


def test_empty_input_never_reaches_executor():
    executor = RecordingExecutor()
    assert BatchScheduler().run([], 8, preprocess=identity, execute=executor) == []
    assert executor.batches == []


def test_chunks_submitted_in_order():
    executor = RecordingExecutor()
    BatchScheduler().run(["a", "b", "c"], 2, preprocess=identity, execute=executor)
    assert executor.batches == [["a", "b"], ["c"]]


def test_chunk_failure_fails_whole_call():
    executor = RecordingExecutor(fail_on="c")
    with pytest.raises(ExecutorError) as excinfo:
        BatchScheduler().run(["a", "b", "c", "d"], 2, preprocess=identity, execute=executor)
    assert "cannot process c" in excinfo.value.message
    assert excinfo.value.message.startswith("Embedding failed")


def test_failure_prefix_used_in_executor_errors():
    with pytest.raises(ExecutorError) as excinfo:
        BatchScheduler().run(
            ["x"],
            1,
            preprocess=identity,
            execute=RecordingExecutor(fail_on="x"),
            failure_prefix="Reranking failed",
        )
    assert excinfo.value.message == "Reranking failed: cannot process x"


def test_unexpected_preprocess_exception_is_preprocessing_failure():
    def broken(chunk):
        raise KeyError("tokenizer")

    with pytest.raises(PreprocessingError):
        BatchScheduler().run(["a"], 1, preprocess=broken, execute=RecordingExecutor())


def test_output_count_mismatch_is_executor_failure():
    with pytest.raises(ExecutorError) as excinfo:
        BatchScheduler().run(["a", "b"], 2, preprocess=identity, execute=lambda batch: ["only-one"])
    assert "1 outputs" in excinfo.value.message


def test_validator_receives_global_offset():
    seen = []

    def validate(offset, chunk, output):
        seen.append((offset, list(chunk)))

    BatchScheduler().run(
        ["a", "b", "c", "d", "e"],
        2,
        preprocess=identity,
        execute=RecordingExecutor(),
        validate=validate,
    )
    assert seen == [(0, ["a", "b"]), (2, ["c", "d"]), (4, ["e"])]


def test_pooled_execution_reassembles_out_of_order_completion():
    # Earlier chunks sleep longer so they finish last.
    inputs = [str(i) for i in range(8)]
    executor = RecordingExecutor(delay_for=lambda batch: 0.05 * (8 - int(batch[0])) / 8)
    scheduler = BatchScheduler(max_workers=4)
    try:
        output = scheduler.run(inputs, 1, preprocess=identity, execute=executor)
    finally:
        scheduler.close()
    assert output == inputs
    assert sorted(executor.batches) == sorted([[item] for item in inputs])


def test_pooled_failure_reports_lowest_failing_chunk():
    def execute(batch):
        if batch[0] in {"1", "3"}:
            raise RuntimeError(f"bad {batch[0]}")
        return batch

    scheduler = BatchScheduler(max_workers=4)
    try:
        with pytest.raises(ExecutorError) as excinfo:
            scheduler.run(["0", "1", "2", "3"], 1, preprocess=identity, execute=execute)
    finally:
        scheduler.close()
    assert excinfo.value.message.endswith("bad 1")


def test_scheduler_rejects_zero_workers():
    with pytest.raises(ValueError):
        BatchScheduler(max_workers=0)
