"""Loaded model instances, one class per modality."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence

import numpy as np

from embed_bridge.config import Settings, get_settings
from embed_bridge.errors import ExecutorError, InvalidArgumentError
from embed_bridge.loader import load_executor
from embed_bridge.preprocess import pair_preprocessor, preprocess_images, preprocess_texts
from embed_bridge.registry import Modality
from embed_bridge.results import RerankHit, SparseVector
from embed_bridge.scheduler import BatchScheduler, validate_batch_size

logger = logging.getLogger(__name__)


class Engine:
    """One executor plus the scheduler that feeds it."""

    modality: Modality
    failure_prefix = "Embedding failed"

    def __init__(self, model_code: str | None = None, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.spec, self.executor = load_executor(self.modality, model_code, settings)
        self.scheduler = BatchScheduler(max_workers=settings.scheduler.max_workers)
        self.closed = False

    @property
    def model_code(self) -> str:
        return self.spec.model_code

    @property
    def dimension(self) -> int:
        return self.spec.dim

    def _log_timing(self, count: int, started_at: float, unit: str) -> None:
        elapsed = time.perf_counter() - started_at
        per_item = (elapsed * 1000.0 / count) if count else 0.0
        logger.debug(
            "%s: %d %s in %.3fs (%.2fms/%s)",
            self.modality.value.capitalize(),
            count,
            unit,
            elapsed,
            per_item,
            unit.rstrip("s"),
        )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.scheduler.close()
        self.executor.close()
        logger.info("%s model %s released", self.modality.value.capitalize(), self.model_code)


class _DenseEngine(Engine):
    def _validate(self, offset: int, chunk: Sequence, output: Sequence) -> None:
        for position, vector in enumerate(output):
            vector = np.asarray(vector)
            if vector.shape != (self.dimension,):
                raise ExecutorError(
                    f"{self.failure_prefix}: invalid vector dimension at index {offset + position}: "
                    f"expected {self.dimension}, got {vector.size}"
                )
            if not np.all(np.isfinite(vector)):
                raise ExecutorError(
                    f"{self.failure_prefix}: non-finite vector values at index {offset + position}"
                )


class TextEmbeddingEngine(_DenseEngine):
    modality = Modality.DENSE_TEXT

    def embed(self, texts: Sequence[str], batch_size: int) -> list[np.ndarray]:
        started_at = time.perf_counter()
        vectors = self.scheduler.run(
            texts,
            batch_size,
            preprocess=preprocess_texts,
            execute=self.executor.embed,
            validate=self._validate,
            failure_prefix=self.failure_prefix,
        )
        self._log_timing(len(texts), started_at, "texts")
        return vectors


class ImageEmbeddingEngine(_DenseEngine):
    modality = Modality.IMAGE
    failure_prefix = "Image embedding failed"

    def embed(self, image_paths: Sequence[str], batch_size: int) -> list[np.ndarray]:
        started_at = time.perf_counter()
        vectors = self.scheduler.run(
            image_paths,
            batch_size,
            preprocess=preprocess_images,
            execute=self.executor.embed,
            validate=self._validate,
            failure_prefix=self.failure_prefix,
        )
        self._log_timing(len(image_paths), started_at, "images")
        return vectors


class SparseTextEmbeddingEngine(Engine):
    modality = Modality.SPARSE_TEXT
    failure_prefix = "Sparse embedding failed"

    def _validate(self, offset: int, chunk: Sequence, output: Sequence[SparseVector]) -> None:
        for position, vector in enumerate(output):
            if vector.indices.shape != vector.values.shape or vector.indices.ndim != 1:
                raise ExecutorError(
                    f"{self.failure_prefix}: index/value count mismatch at index {offset + position}"
                )
            if vector.indices.size and (
                int(vector.indices.min()) < 0 or int(vector.indices.max()) >= self.dimension
            ):
                raise ExecutorError(
                    f"{self.failure_prefix}: index out of range at index {offset + position}"
                )

    def embed(self, texts: Sequence[str], batch_size: int) -> list[SparseVector]:
        started_at = time.perf_counter()
        vectors = self.scheduler.run(
            texts,
            batch_size,
            preprocess=preprocess_texts,
            execute=self.executor.embed,
            validate=self._validate,
            failure_prefix=self.failure_prefix,
        )
        self._log_timing(len(texts), started_at, "texts")
        return vectors


class TextRerankEngine(Engine):
    modality = Modality.RERANK
    failure_prefix = "Reranking failed"

    def _validate(self, offset: int, chunk: Sequence, output: Sequence[float]) -> None:
        for position, score in enumerate(output):
            if not math.isfinite(float(score)):
                raise ExecutorError(f"{self.failure_prefix}: non-finite score at index {offset + position}")

    def rerank(
        self,
        query: str,
        documents: Sequence[str],
        return_documents: bool,
        batch_size: int,
    ) -> list[RerankHit]:
        if not isinstance(query, str):
            raise InvalidArgumentError("Query must be a string")
        validate_batch_size(batch_size)

        started_at = time.perf_counter()
        scores = self.scheduler.run(
            documents,
            batch_size,
            preprocess=pair_preprocessor(query),
            execute=self.executor.score,
            validate=self._validate,
            failure_prefix=self.failure_prefix,
        )
        hits = [
            RerankHit(
                index=index,
                score=float(score),
                document=documents[index] if return_documents else None,
            )
            for index, score in enumerate(scores)
        ]
        # sorted() is stable, so equal scores keep ascending input index.
        hits = sorted(hits, key=lambda hit: -hit.score)
        self._log_timing(len(documents), started_at, "docs")
        return hits
