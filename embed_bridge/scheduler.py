"""Ordered, all-or-nothing batching of input lists."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

from embed_bridge.errors import EngineError, ExecutorError, InvalidArgumentError, PreprocessingError

logger = logging.getLogger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")

Validator = Callable[[int, Sequence[Any], Sequence[Any]], None]


def validate_batch_size(batch_size: int) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise InvalidArgumentError(f"batch_size must be an integer, got {type(batch_size).__name__}")
    if batch_size < 1:
        raise InvalidArgumentError(f"batch_size must be >= 1, got {batch_size}")
    return batch_size


def partition(items: Sequence[In], batch_size: int) -> list[Sequence[In]]:
    """Split ``items`` into ``ceil(n / batch_size)`` contiguous chunks."""
    validate_batch_size(batch_size)
    count = math.ceil(len(items) / batch_size)
    return [items[i * batch_size : (i + 1) * batch_size] for i in range(count)]


class BatchScheduler:
    """Drives chunks through preprocess and execute, reassembling in input order.

    With ``max_workers == 1`` chunks run inline on the calling thread.
    Otherwise a thread pool owned by the scheduler runs them concurrently;
    results are collected by chunk index so completion order never leaks
    into the output. The first failing chunk (by index) fails the call and
    nothing from the other chunks is returned.
    """

    def __init__(self, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="embed-bridge-chunk",
                )
            return self._pool

    def run(
        self,
        inputs: Sequence[In],
        batch_size: int,
        *,
        preprocess: Callable[[Sequence[In]], Any],
        execute: Callable[[Any], Sequence[Out]],
        validate: Validator | None = None,
        failure_prefix: str = "Embedding failed",
    ) -> list[Out]:
        validate_batch_size(batch_size)
        if not inputs:
            return []

        chunks = partition(inputs, batch_size)

        def process(index: int) -> Sequence[Out]:
            chunk = chunks[index]
            try:
                batch = preprocess(chunk)
            except EngineError:
                raise
            except Exception as exc:
                raise PreprocessingError(f"Preprocessing failed: {exc}") from exc

            try:
                output = execute(batch)
            except EngineError:
                raise
            except Exception as exc:
                logger.warning("Chunk %d of %d failed: %s", index, len(chunks), exc)
                raise ExecutorError(f"{failure_prefix}: {exc}") from exc

            if len(output) != len(chunk):
                raise ExecutorError(
                    f"{failure_prefix}: executor returned {len(output)} outputs "
                    f"for a chunk of {len(chunk)} inputs"
                )
            if validate is not None:
                validate(index * batch_size, chunk, output)
            return output

        if self.max_workers == 1 or len(chunks) == 1:
            per_chunk = [process(index) for index in range(len(chunks))]
        else:
            per_chunk = self._run_pooled(process, len(chunks))

        results: list[Out] = []
        for output in per_chunk:
            results.extend(output)
        logger.debug("Processed %d inputs in %d chunks", len(inputs), len(chunks))
        return results

    def _run_pooled(self, process: Callable[[int], Sequence[Out]], count: int) -> list[Sequence[Out]]:
        pool = self._get_pool()
        futures: list[Future] = [pool.submit(process, index) for index in range(count)]
        ordered: list[Sequence[Out]] = []
        try:
            for future in futures:
                ordered.append(future.result())
        except BaseException:
            for future in futures:
                future.cancel()
            raise
        return ordered

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=True, cancel_futures=True)
                self._pool = None
