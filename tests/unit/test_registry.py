from __future__ import annotations

import pytest

from embed_bridge.errors import UnsupportedModelError
from embed_bridge.registry import DEFAULT_MODELS, Modality, resolve_model, supported_models


@pytest.mark.parametrize("modality", list(Modality))
def test_every_modality_lists_models_with_positive_dimension(modality):
    models = supported_models(modality)
    assert models
    for model in models:
        assert model.model_code
        assert model.description
        assert model.dim > 0


@pytest.mark.parametrize("modality", list(Modality))
def test_default_model_is_registered(modality):
    spec = resolve_model(modality, None)
    assert spec.model_code == DEFAULT_MODELS[modality]
    assert spec.model_code in [model.model_code for model in supported_models(modality)]


def test_aliases_resolve_to_canonical_code():
    assert resolve_model(Modality.DENSE_TEXT, "BGESmallENV15").model_code == "BAAI/bge-small-en-v1.5"
    assert resolve_model(Modality.DENSE_TEXT, "AllMiniLML6V2").dim == 384
    assert resolve_model(Modality.IMAGE, "ClipVitB32").model_code == "Qdrant/clip-ViT-B-32-vision"


def test_unknown_model_rejected_with_code_in_message():
    with pytest.raises(UnsupportedModelError) as excinfo:
        resolve_model(Modality.SPARSE_TEXT, "not-a-model")
    assert "not-a-model" in excinfo.value.message
    assert excinfo.value.status == "unsupported_model"


def test_model_codes_are_not_shared_across_modalities():
    with pytest.raises(UnsupportedModelError):
        resolve_model(Modality.RERANK, "BAAI/bge-small-en-v1.5")


def test_listing_returns_independent_snapshots():
    first = supported_models(Modality.DENSE_TEXT)
    first.clear()
    assert supported_models(Modality.DENSE_TEXT)
