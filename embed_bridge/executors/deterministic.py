"""Deterministic lightweight executors for local testing."""

from __future__ import annotations

import hashlib
import math
import re
from collections import Counter

import numpy as np
from PIL import Image

from embed_bridge.results import SparseVector

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _bucket(token: str, size: int) -> int:
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], byteorder="big", signed=False) % size


class _HashVectorizer:
    """Stable hash-based vectors with fixed dimension."""

    def __init__(self, dimension: int, normalize: bool) -> None:
        self.dimension = dimension
        self._normalize = normalize

    def vectorize(self, key: str) -> np.ndarray:
        values = np.zeros(self.dimension, dtype=np.float32)
        if not key:
            return values

        for idx in range(self.dimension):
            digest = hashlib.sha256(f"{key}:{idx}".encode("utf-8")).digest()
            raw = int.from_bytes(digest[:4], byteorder="big", signed=False)
            values[idx] = (raw / 2**31) - 1.0

        if self._normalize:
            norm = float(np.linalg.norm(values))
            if norm > 0:
                values = values / norm
        return values


class DeterministicTextExecutor:
    name = "deterministic"

    def __init__(self, *, model_code: str, dimension: int, normalize: bool) -> None:
        self.model_code = model_code
        self.dimension = dimension
        self._vectorizer = _HashVectorizer(dimension, normalize)

    def embed(self, batch: list[str]) -> np.ndarray:
        if not batch:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.stack([self._vectorizer.vectorize(text) for text in batch])

    def close(self) -> None:
        self._vectorizer = None


class DeterministicImageExecutor:
    name = "deterministic"

    def __init__(self, *, model_code: str, dimension: int, normalize: bool) -> None:
        self.model_code = model_code
        self.dimension = dimension
        self._vectorizer = _HashVectorizer(dimension, normalize)

    def _fingerprint(self, image: Image.Image) -> str:
        digest = hashlib.sha256(image.tobytes())
        digest.update(f"{image.mode}:{image.size[0]}x{image.size[1]}".encode("ascii"))
        return digest.hexdigest()

    def embed(self, batch: list[Image.Image]) -> np.ndarray:
        if not batch:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.stack([self._vectorizer.vectorize(self._fingerprint(image)) for image in batch])

    def close(self) -> None:
        self._vectorizer = None


class DeterministicSparseExecutor:
    """Bag-of-words weights hashed into the model vocabulary."""

    name = "deterministic"

    def __init__(self, *, model_code: str, dimension: int) -> None:
        self.model_code = model_code
        self.dimension = dimension

    def _sparse(self, text: str) -> SparseVector:
        weights: Counter[int] = Counter()
        for token, count in Counter(_tokens(text)).items():
            weights[_bucket(token, self.dimension)] += math.log1p(count)
        indices = np.fromiter(weights.keys(), dtype=np.uintp, count=len(weights))
        values = np.fromiter(weights.values(), dtype=np.float32, count=len(weights))
        return SparseVector(indices=indices, values=values)

    def embed(self, batch: list[str]) -> list[SparseVector]:
        return [self._sparse(text) for text in batch]

    def close(self) -> None:
        pass


class DeterministicRerankExecutor:
    """Token-overlap relevance scores."""

    name = "deterministic"

    def __init__(self, *, model_code: str) -> None:
        self.model_code = model_code

    def score(self, batch: list[tuple[str, str]]) -> np.ndarray:
        scores = np.zeros(len(batch), dtype=np.float32)
        for idx, (query, document) in enumerate(batch):
            query_tokens = set(_tokens(query))
            doc_tokens = _tokens(document)
            if not query_tokens or not doc_tokens:
                continue
            overlap = sum(1 for token in doc_tokens if token in query_tokens)
            scores[idx] = overlap / math.sqrt(len(doc_tokens))
        return scores

    def close(self) -> None:
        pass
