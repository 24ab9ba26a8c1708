"""Inference executor factory."""

from __future__ import annotations

from embed_bridge.config import Settings
from embed_bridge.executors.base import Executor
from embed_bridge.executors.deterministic import (
    DeterministicImageExecutor,
    DeterministicRerankExecutor,
    DeterministicSparseExecutor,
    DeterministicTextExecutor,
)
from embed_bridge.registry import Modality, ModelSpec


def create_executor(modality: Modality, spec: ModelSpec, settings: Settings) -> Executor:
    """Build one executor for ``spec`` from settings."""
    config = settings.executor

    if config.backend == "sentence_transformers":
        from embed_bridge.executors import sentence_transformers as st

        common = {
            "model_code": spec.model_code,
            "source": spec.source,
            "trust_remote_code": config.trust_remote_code,
            "cache_dir": config.cache_dir,
            "device": config.device,
        }
        if modality is Modality.DENSE_TEXT:
            return st.SentenceTransformersTextExecutor(normalize=config.normalize, **common)
        if modality is Modality.IMAGE:
            return st.SentenceTransformersImageExecutor(normalize=config.normalize, **common)
        if modality is Modality.SPARSE_TEXT:
            return st.SentenceTransformersSparseExecutor(**common)
        return st.SentenceTransformersRerankExecutor(**common)

    if modality is Modality.DENSE_TEXT:
        return DeterministicTextExecutor(
            model_code=spec.model_code,
            dimension=spec.dim,
            normalize=config.normalize,
        )
    if modality is Modality.IMAGE:
        return DeterministicImageExecutor(
            model_code=spec.model_code,
            dimension=spec.dim,
            normalize=config.normalize,
        )
    if modality is Modality.SPARSE_TEXT:
        return DeterministicSparseExecutor(model_code=spec.model_code, dimension=spec.dim)
    return DeterministicRerankExecutor(model_code=spec.model_code)
