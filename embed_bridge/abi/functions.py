"""Flat, allocation-explicit call surface.

Every function here is safe to expose to a foreign caller: nothing raises.
A failing call returns ``None`` and, when ``error`` is a non-NULL
``POINTER(POINTER(EngineErrorC))`` (see ``structs.new_error_slot``), stores
one newly allocated error object in it. A successful call leaves ``error``
untouched.

Ownership:

* handles are integer tokens; destroy each exactly once with its
  modality's ``*_free`` function and never use it afterwards;
* every returned pointer is owned by the caller and must go back through
  its matching release function (``float_array_vec_free``,
  ``sparse_embedding_vec_free``, ``rerank_result_vec_free``,
  ``model_info_vec_free``, ``error_free``);
* input strings (``str`` or UTF-8 ``bytes``) are only borrowed for the call.

A handle may not be used from two threads at once without external locking.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from embed_bridge.abi import marshal
from embed_bridge.engines import (
    Engine,
    ImageEmbeddingEngine,
    SparseTextEmbeddingEngine,
    TextEmbeddingEngine,
    TextRerankEngine,
)
from embed_bridge.errors import InvalidArgumentError, Outcome
from embed_bridge.handles import handles
from embed_bridge.registry import Modality, supported_models
from embed_bridge.runtime import get_runtime

logger = logging.getLogger(__name__)

error_free = marshal.error_free
float_array_vec_free = marshal.float_array_vec_free
sparse_embedding_vec_free = marshal.sparse_embedding_vec_free
rerank_result_vec_free = marshal.rerank_result_vec_free
model_info_vec_free = marshal.model_info_vec_free


def _decode(value, what: str) -> str:
    if value is None:
        raise InvalidArgumentError(f"Null {what} pointer in array")
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidArgumentError(f"Invalid UTF-8 in {what}: {exc}") from exc
    if isinstance(value, str):
        return value
    raise InvalidArgumentError(f"Expected str or bytes for {what}, got {type(value).__name__}")


def _borrow(items: Sequence | None, count: int, what: str) -> list[str]:
    """Copy ``count`` borrowed input strings into owned Python strings."""
    if items is None:
        raise InvalidArgumentError("Null pointer provided")
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise InvalidArgumentError(f"Invalid {what} count {count!r}")
    if count > len(items):
        raise InvalidArgumentError(f"{what.capitalize()} count {count} exceeds the {len(items)} entries provided")
    return [_decode(items[i], what) for i in range(count)]


def _model_name(model_name) -> str | None:
    if model_name is None:
        return None
    if isinstance(model_name, bytes):
        try:
            return model_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidArgumentError(f"Invalid model name: {exc}") from exc
    if isinstance(model_name, str):
        return model_name
    raise InvalidArgumentError(f"Invalid model name: expected str or bytes, got {type(model_name).__name__}")


def _flatten(outcome: Outcome, error):
    """Collapse an outcome into the result-or-error convention."""
    if outcome.ok:
        return outcome.value
    logger.warning("Boundary call failed: %s", outcome.error.message)
    if error:
        error[0] = marshal.marshal_error(outcome.error.message)
    return None


def _create(kind: type[Engine], model_name, error) -> int | None:
    def run() -> int:
        return handles.register(kind(_model_name(model_name)))

    return _flatten(Outcome.capture(run), error)


def _invoke(kind: type[Engine], operation: str, handle, input_count, call: Callable[[Engine], object], error):
    """Resolve ``handle``, run ``call`` on its engine under a span and record metrics."""
    runtime = get_runtime()
    started_at = time.perf_counter()
    model = "unknown"

    def run():
        nonlocal model
        engine = handles.resolve(handle, kind)
        model = engine.model_code
        return call(engine)

    with runtime.tracer.start_as_current_span(f"embed_bridge.{operation}") as span:
        outcome = Outcome.capture(run)
        status = "ok" if outcome.ok else outcome.error.status
        span.set_attribute("embed_bridge.modality", kind.modality.value)
        span.set_attribute("embed_bridge.status", status)

    runtime.engine_metrics.record(
        operation=operation,
        modality=kind.modality.value,
        model=model,
        status=status,
        input_count=input_count if isinstance(input_count, int) else 0,
        duration_ms=(time.perf_counter() - started_at) * 1000.0,
    )
    return _flatten(outcome, error)


def _list(modality: Modality):
    return marshal.marshal_model_infos(supported_models(modality))


# Dense text embedding


def text_embedding_new(model_name=None, error=None) -> int | None:
    """Create a dense text embedding handle; ``None`` selects the default model."""
    return _create(TextEmbeddingEngine, model_name, error)


def text_embedding_embed(handle, texts, num_texts, batch_size, error=None):
    """Embed ``texts[:num_texts]``; returns ``POINTER(FloatArrayVec)`` or ``None``."""

    def call(engine: TextEmbeddingEngine):
        return marshal.marshal_dense(engine.embed(_borrow(texts, num_texts, "text"), batch_size))

    return _invoke(TextEmbeddingEngine, "text_embedding_embed", handle, num_texts, call, error)


def text_embedding_free(handle) -> None:
    handles.destroy(handle, TextEmbeddingEngine)


def text_embedding_list_supported_models():
    return _list(Modality.DENSE_TEXT)


# Sparse text embedding


def sparse_text_embedding_new(model_name=None, error=None) -> int | None:
    """Create a sparse text embedding handle; ``None`` selects the default model."""
    return _create(SparseTextEmbeddingEngine, model_name, error)


def sparse_text_embedding_embed(handle, texts, num_texts, batch_size, error=None):
    """Embed ``texts[:num_texts]``; returns ``POINTER(SparseEmbeddingVec)`` or ``None``."""

    def call(engine: SparseTextEmbeddingEngine):
        return marshal.marshal_sparse(engine.embed(_borrow(texts, num_texts, "text"), batch_size))

    return _invoke(SparseTextEmbeddingEngine, "sparse_text_embedding_embed", handle, num_texts, call, error)


def sparse_text_embedding_free(handle) -> None:
    handles.destroy(handle, SparseTextEmbeddingEngine)


def sparse_text_embedding_list_supported_models():
    return _list(Modality.SPARSE_TEXT)


# Image embedding


def image_embedding_new(model_name=None, error=None) -> int | None:
    """Create an image embedding handle; ``None`` selects the default model."""
    return _create(ImageEmbeddingEngine, model_name, error)


def image_embedding_embed(handle, image_paths, num_images, batch_size, error=None):
    """Embed the images at ``image_paths[:num_images]``; returns ``POINTER(FloatArrayVec)`` or ``None``."""

    def call(engine: ImageEmbeddingEngine):
        return marshal.marshal_dense(engine.embed(_borrow(image_paths, num_images, "path"), batch_size))

    return _invoke(ImageEmbeddingEngine, "image_embedding_embed", handle, num_images, call, error)


def image_embedding_free(handle) -> None:
    handles.destroy(handle, ImageEmbeddingEngine)


def image_embedding_list_supported_models():
    return _list(Modality.IMAGE)


# Reranking


def text_rerank_new(model_name=None, error=None) -> int | None:
    """Create a reranker handle; ``None`` selects the default model."""
    return _create(TextRerankEngine, model_name, error)


def text_rerank_rerank(handle, query, documents, num_documents, return_documents, batch_size, error=None):
    """Score ``documents[:num_documents]`` against ``query``.

    Returns ``POINTER(RerankResultVec)`` sorted by descending score (ties by
    ascending document index) or ``None``. ``document`` fields are NULL unless
    ``return_documents`` is true.
    """

    def call(engine: TextRerankEngine):
        if query is None:
            raise InvalidArgumentError("Null pointer provided")
        query_text = _decode(query, "query")
        docs = _borrow(documents, num_documents, "document")
        if return_documents:
            for index, doc in enumerate(docs):
                if "\x00" in doc:
                    raise InvalidArgumentError(f"Interior NUL byte in document at index {index}")
        hits = engine.rerank(query_text, docs, bool(return_documents), batch_size)
        return marshal.marshal_rerank(hits)

    return _invoke(TextRerankEngine, "text_rerank_rerank", handle, num_documents, call, error)


def text_rerank_free(handle) -> None:
    handles.destroy(handle, TextRerankEngine)


def text_rerank_list_supported_models():
    return _list(Modality.RERANK)
