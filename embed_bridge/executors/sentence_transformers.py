"""Sentence-transformers executors for real local inference."""

from __future__ import annotations

import numpy as np
from PIL import Image

from embed_bridge.results import SparseVector

_MISSING_DEPENDENCY = (
    "sentence-transformers executor selected but dependency is missing. "
    "Install with: pip install -e '.[local]'"
)


def _to_numpy(value) -> np.ndarray:
    if hasattr(value, "to_dense"):
        value = value.to_dense()
    if hasattr(value, "detach"):
        value = value.detach().cpu().numpy()
    return np.asarray(value, dtype=np.float32)


class _EncoderExecutor:
    name = "sentence_transformers"

    def __init__(
        self,
        *,
        model_code: str,
        source: str,
        normalize: bool,
        trust_remote_code: bool,
        cache_dir: str | None,
        device: str | None,
    ) -> None:
        try:
            from sentence_transformers import SentenceTransformer
        except ModuleNotFoundError as exc:  # pragma: no cover - depends on optional extra
            raise RuntimeError(_MISSING_DEPENDENCY) from exc

        self.model_code = model_code
        self._normalize = normalize
        self._model = SentenceTransformer(
            source,
            device=device,
            cache_folder=cache_dir,
            trust_remote_code=trust_remote_code,
        )
        dim = self._model.get_sentence_embedding_dimension()
        self.dimension = int(dim) if dim else 0

    def _encode(self, batch: list) -> np.ndarray:
        vectors = self._model.encode(
            batch,
            batch_size=max(1, len(batch)),
            normalize_embeddings=self._normalize,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        if isinstance(vectors, np.ndarray):
            return vectors.astype(np.float32)
        return np.stack([np.asarray(item, dtype=np.float32) for item in vectors])

    def close(self) -> None:
        self._model = None


class SentenceTransformersTextExecutor(_EncoderExecutor):
    """Dense text embeddings powered by sentence-transformers."""

    def embed(self, batch: list[str]) -> np.ndarray:
        return self._encode(batch)


class SentenceTransformersImageExecutor(_EncoderExecutor):
    """Image embeddings from a CLIP-style sentence-transformers model."""

    def embed(self, batch: list[Image.Image]) -> np.ndarray:
        return self._encode(batch)


class SentenceTransformersSparseExecutor:
    """SPLADE-style sparse embeddings via ``SparseEncoder``."""

    name = "sentence_transformers"

    def __init__(
        self,
        *,
        model_code: str,
        source: str,
        trust_remote_code: bool,
        cache_dir: str | None,
        device: str | None,
    ) -> None:
        try:
            from sentence_transformers import SparseEncoder
        except ModuleNotFoundError as exc:  # pragma: no cover - depends on optional extra
            raise RuntimeError(_MISSING_DEPENDENCY) from exc

        self.model_code = model_code
        self._model = SparseEncoder(
            source,
            device=device,
            cache_folder=cache_dir,
            trust_remote_code=trust_remote_code,
        )
        dim = self._model.get_sentence_embedding_dimension()
        self.dimension = int(dim) if dim else 0

    def embed(self, batch: list[str]) -> list[SparseVector]:
        rows = self._model.encode(
            batch,
            batch_size=max(1, len(batch)),
            convert_to_tensor=False,
            convert_to_sparse_tensor=False,
            show_progress_bar=False,
        )
        output = []
        for row in rows:
            dense = _to_numpy(row).reshape(-1)
            (indices,) = np.nonzero(dense)
            output.append(
                SparseVector(
                    indices=indices.astype(np.uintp),
                    values=dense[indices].astype(np.float32),
                )
            )
        return output

    def close(self) -> None:
        self._model = None


class SentenceTransformersRerankExecutor:
    """Cross-encoder relevance scores."""

    name = "sentence_transformers"

    def __init__(
        self,
        *,
        model_code: str,
        source: str,
        trust_remote_code: bool,
        cache_dir: str | None,
        device: str | None,
    ) -> None:
        try:
            from sentence_transformers import CrossEncoder
        except ModuleNotFoundError as exc:  # pragma: no cover - depends on optional extra
            raise RuntimeError(_MISSING_DEPENDENCY) from exc

        self.model_code = model_code
        self._model = CrossEncoder(
            source,
            device=device,
            cache_folder=cache_dir,
            trust_remote_code=trust_remote_code,
        )

    def score(self, batch: list[tuple[str, str]]) -> np.ndarray:
        scores = self._model.predict(
            batch,
            batch_size=max(1, len(batch)),
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return _to_numpy(scores).reshape(-1)

    def close(self) -> None:
        self._model = None
