"""Inference executor protocols."""

from __future__ import annotations

from typing import Protocol

import numpy as np
from PIL import Image

from embed_bridge.results import SparseVector


class DenseTextExecutor(Protocol):
    """Backend contract for dense text embedding."""

    name: str
    model_code: str
    dimension: int

    def embed(self, batch: list[str]) -> np.ndarray:
        """Return a ``(len(batch), dimension)`` float32 array."""

    def close(self) -> None:
        """Release backend resources."""


class SparseTextExecutor(Protocol):
    """Backend contract for sparse text embedding."""

    name: str
    model_code: str
    dimension: int

    def embed(self, batch: list[str]) -> list[SparseVector]:
        """Return one sparse vector per text."""

    def close(self) -> None:
        """Release backend resources."""


class ImageExecutor(Protocol):
    """Backend contract for image embedding."""

    name: str
    model_code: str
    dimension: int

    def embed(self, batch: list[Image.Image]) -> np.ndarray:
        """Return a ``(len(batch), dimension)`` float32 array."""

    def close(self) -> None:
        """Release backend resources."""


class RerankExecutor(Protocol):
    """Backend contract for query/document relevance scoring."""

    name: str
    model_code: str

    def score(self, batch: list[tuple[str, str]]) -> np.ndarray:
        """Return one relevance score per (query, document) pair."""

    def close(self) -> None:
        """Release backend resources."""


Executor = DenseTextExecutor | SparseTextExecutor | ImageExecutor | RerankExecutor
