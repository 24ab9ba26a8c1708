"""Native result shapes produced by engines before marshaling."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class SparseVector:
    """Nonzero weights of one sparse embedding."""

    indices: np.ndarray
    values: np.ndarray

    def __len__(self) -> int:
        return int(self.indices.shape[0])


@dataclass(slots=True)
class RerankHit:
    """Relevance score for one document of a rerank call."""

    index: int
    score: float
    document: str | None = None
