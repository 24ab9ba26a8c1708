"""Resolve model codes and materialize executors."""

from __future__ import annotations

import logging
import time

from embed_bridge.config import Settings, get_settings
from embed_bridge.errors import ArtifactError, EngineError
from embed_bridge.executors.base import Executor
from embed_bridge.executors.factory import create_executor
from embed_bridge.registry import Modality, ModelSpec, resolve_model

logger = logging.getLogger(__name__)


def load_executor(
    modality: Modality,
    model_code: str | None,
    settings: Settings | None = None,
) -> tuple[ModelSpec, Executor]:
    """Return ``(spec, executor)`` for a model code of one modality.

    Unknown codes raise ``UnsupportedModelError``; anything that goes wrong
    while fetching or constructing the model is an ``ArtifactError``.
    """
    settings = settings or get_settings()
    spec: ModelSpec = resolve_model(modality, model_code)

    started_at = time.perf_counter()
    try:
        executor = create_executor(modality, spec, settings)
    except EngineError:
        raise
    except Exception as exc:
        logger.warning("Failed to load %s model %s: %s", modality.value, spec.model_code, exc)
        raise ArtifactError(f"Failed to create {modality.value}: {exc}") from exc

    declared = getattr(executor, "dimension", None)
    if modality is not Modality.RERANK and declared and declared != spec.dim:
        executor.close()
        raise ArtifactError(
            f"Failed to create {modality.value}: model {spec.model_code} reports "
            f"dimension {declared}, expected {spec.dim}"
        )

    logger.info(
        "%s model %s initialized with %s executor in %.3fs",
        modality.value.capitalize(),
        spec.model_code,
        executor.name,
        time.perf_counter() - started_at,
    )
    return spec, executor
