"""Static catalog of supported models per modality."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from embed_bridge.errors import UnsupportedModelError


class Modality(str, Enum):
    """Kinds of engine the boundary can create."""

    DENSE_TEXT = "text embedding"
    SPARSE_TEXT = "sparse text embedding"
    IMAGE = "image embedding"
    RERANK = "text reranker"


class ModelInfo(BaseModel):
    """Public description of one supported model."""

    model_config = ConfigDict(frozen=True)

    model_code: str
    description: str
    dim: int = Field(gt=0)


class ModelSpec(BaseModel):
    """Registry entry: public info plus what the loader needs."""

    model_config = ConfigDict(frozen=True)

    model_code: str
    description: str
    dim: int = Field(gt=0)
    source: str
    aliases: tuple[str, ...] = ()

    def info(self) -> ModelInfo:
        return ModelInfo(model_code=self.model_code, description=self.description, dim=self.dim)


_DENSE_TEXT = (
    ModelSpec(
        model_code="sentence-transformers/all-MiniLM-L6-v2",
        description="Sentence Transformer model, MiniLM-L6-v2",
        dim=384,
        source="sentence-transformers/all-MiniLM-L6-v2",
        aliases=("AllMiniLML6V2",),
    ),
    ModelSpec(
        model_code="Xenova/all-MiniLM-L12-v2",
        description="Sentence Transformer model, MiniLM-L12-v2",
        dim=384,
        source="sentence-transformers/all-MiniLM-L12-v2",
        aliases=("AllMiniLML12V2",),
    ),
    ModelSpec(
        model_code="BAAI/bge-small-en-v1.5",
        description="v1.5 release of the fast and default English model",
        dim=384,
        source="BAAI/bge-small-en-v1.5",
        aliases=("BGESmallENV15", "Xenova/bge-small-en-v1.5"),
    ),
    ModelSpec(
        model_code="BAAI/bge-base-en-v1.5",
        description="v1.5 release of the base English model",
        dim=768,
        source="BAAI/bge-base-en-v1.5",
        aliases=("BGEBaseENV15", "Xenova/bge-base-en-v1.5"),
    ),
    ModelSpec(
        model_code="BAAI/bge-large-en-v1.5",
        description="v1.5 release of the large English model",
        dim=1024,
        source="BAAI/bge-large-en-v1.5",
        aliases=("BGELargeENV15", "Xenova/bge-large-en-v1.5"),
    ),
    ModelSpec(
        model_code="BAAI/bge-small-zh-v1.5",
        description="v1.5 release of the small Chinese model",
        dim=512,
        source="BAAI/bge-small-zh-v1.5",
        aliases=("BGESmallZHV15",),
    ),
    ModelSpec(
        model_code="nomic-ai/nomic-embed-text-v1.5",
        description="v1.5 release of the 8192 context length english model",
        dim=768,
        source="nomic-ai/nomic-embed-text-v1.5",
        aliases=("NomicEmbedTextV15", "nomic-embed-text"),
    ),
    ModelSpec(
        model_code="sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2",
        description="Multi-lingual model",
        dim=384,
        source="sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2",
        aliases=("ParaphraseMLMiniLML12V2",),
    ),
    ModelSpec(
        model_code="intfloat/multilingual-e5-small",
        description="Small model of multilingual E5 Text Embeddings",
        dim=384,
        source="intfloat/multilingual-e5-small",
        aliases=("MultilingualE5Small",),
    ),
    ModelSpec(
        model_code="intfloat/multilingual-e5-base",
        description="Base model of multilingual E5 Text Embeddings",
        dim=768,
        source="intfloat/multilingual-e5-base",
        aliases=("MultilingualE5Base",),
    ),
    ModelSpec(
        model_code="mixedbread-ai/mxbai-embed-large-v1",
        description="Large English embedding model from MixedBreed.ai",
        dim=1024,
        source="mixedbread-ai/mxbai-embed-large-v1",
        aliases=("MxbaiEmbedLargeV1",),
    ),
    ModelSpec(
        model_code="Alibaba-NLP/gte-base-en-v1.5",
        description="Base multilingual embedding model from Alibaba",
        dim=768,
        source="Alibaba-NLP/gte-base-en-v1.5",
        aliases=("GTEBaseENV15",),
    ),
    ModelSpec(
        model_code="jinaai/jina-embeddings-v2-base-code",
        description="Jina embeddings v2 base code",
        dim=768,
        source="jinaai/jina-embeddings-v2-base-code",
        aliases=("JinaEmbeddingsV2BaseCode",),
    ),
)

_SPARSE_TEXT = (
    ModelSpec(
        model_code="Qdrant/Splade_PP_en_v1",
        description="Splade sparse vector model for commercial use, v1",
        dim=30522,
        source="prithivida/Splade_PP_en_v1",
        aliases=("SPLADEPPV1", "prithivida/Splade_PP_en_v1"),
    ),
    ModelSpec(
        model_code="naver/splade-cocondenser-ensembledistil",
        description="SPLADE++ CoCondenser EnsembleDistil sparse model",
        dim=30522,
        source="naver/splade-cocondenser-ensembledistil",
        aliases=("SpladeCocondenserEnsembleDistil",),
    ),
)

_IMAGE = (
    ModelSpec(
        model_code="Qdrant/clip-ViT-B-32-vision",
        description="CLIP vision encoder based on ViT-B/32",
        dim=512,
        source="sentence-transformers/clip-ViT-B-32",
        aliases=("ClipVitB32", "clip-ViT-B-32"),
    ),
    ModelSpec(
        model_code="Qdrant/clip-ViT-B-16-vision",
        description="CLIP vision encoder based on ViT-B/16",
        dim=512,
        source="sentence-transformers/clip-ViT-B-16",
        aliases=("ClipVitB16", "clip-ViT-B-16"),
    ),
    ModelSpec(
        model_code="Qdrant/clip-ViT-L-14-vision",
        description="CLIP vision encoder based on ViT-L/14",
        dim=768,
        source="sentence-transformers/clip-ViT-L-14",
        aliases=("ClipVitL14", "clip-ViT-L-14"),
    ),
)

_RERANK = (
    ModelSpec(
        model_code="BAAI/bge-reranker-base",
        description="reranker model for English and Chinese",
        dim=1,
        source="BAAI/bge-reranker-base",
        aliases=("BGERerankerBase",),
    ),
    ModelSpec(
        model_code="BAAI/bge-reranker-v2-m3",
        description="reranker model for multilingual",
        dim=1,
        source="BAAI/bge-reranker-v2-m3",
        aliases=("BGERerankerV2M3", "rozgo/bge-reranker-v2-m3"),
    ),
    ModelSpec(
        model_code="jinaai/jina-reranker-v1-turbo-en",
        description="reranker model for English",
        dim=1,
        source="jinaai/jina-reranker-v1-turbo-en",
        aliases=("JINARerankerV1TurboEn",),
    ),
    ModelSpec(
        model_code="jinaai/jina-reranker-v2-base-multilingual",
        description="reranker model for multilingual",
        dim=1,
        source="jinaai/jina-reranker-v2-base-multilingual",
        aliases=("JINARerankerV2BaseMultiligual",),
    ),
)

_CATALOG: dict[Modality, tuple[ModelSpec, ...]] = {
    Modality.DENSE_TEXT: _DENSE_TEXT,
    Modality.SPARSE_TEXT: _SPARSE_TEXT,
    Modality.IMAGE: _IMAGE,
    Modality.RERANK: _RERANK,
}

DEFAULT_MODELS: dict[Modality, str] = {
    Modality.DENSE_TEXT: "BAAI/bge-small-en-v1.5",
    Modality.SPARSE_TEXT: "Qdrant/Splade_PP_en_v1",
    Modality.IMAGE: "Qdrant/clip-ViT-B-32-vision",
    Modality.RERANK: "BAAI/bge-reranker-base",
}


def supported_models(modality: Modality) -> list[ModelInfo]:
    """Snapshot of public model info for one modality."""
    return [spec.info() for spec in _CATALOG[modality]]


def resolve_model(modality: Modality, model_code: str | None) -> ModelSpec:
    """Map a model code or alias to its registry entry.

    ``None`` or an empty code selects the modality default.
    """
    requested = model_code or DEFAULT_MODELS[modality]
    for spec in _CATALOG[modality]:
        if requested == spec.model_code or requested in spec.aliases:
            return spec
    raise UnsupportedModelError(f"Unsupported {modality.value} model '{requested}'")
