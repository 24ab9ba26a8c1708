"""Pythonic wrappers over the flat boundary.

These classes only talk to ``embed_bridge.abi.functions``: they create a
handle, copy every result out of its boundary buffers, release the buffers
and turn error objects into ``EmbedBridgeError``. A ``weakref.finalize``
destroys the handle if ``close()`` was never called.
"""

from __future__ import annotations

import weakref
from collections.abc import Callable, Sequence

import numpy as np

from embed_bridge.abi import functions as abi
from embed_bridge.abi import marshal
from embed_bridge.abi.structs import new_error_slot, read_string
from embed_bridge.registry import ModelInfo
from embed_bridge.results import RerankHit, SparseVector


class EmbedBridgeError(Exception):
    """Failure reported by the boundary; only the message is available."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _consume_error(slot) -> EmbedBridgeError:
    try:
        message = read_string(slot.contents.message) if slot else None
    finally:
        abi.error_free(slot)
    return EmbedBridgeError(message or "unknown error")


def _call(func: Callable, *args):
    """Invoke a boundary function, raising on the error channel."""
    slot, out = new_error_slot()
    result = func(*args, out)
    if result is None:
        raise _consume_error(slot)
    return result


class _HandleOwner:
    _create: Callable
    _destroy: Callable
    _label: str

    def __init__(self, model_name: str | None = None) -> None:
        self._handle: int | None = _call(type(self)._create, model_name)
        self._finalizer = weakref.finalize(self, type(self)._destroy, self._handle)

    def _require_handle(self) -> int:
        if self._handle is None:
            raise EmbedBridgeError(f"{self._label} handle is closed")
        return self._handle

    @property
    def closed(self) -> bool:
        return self._handle is None

    def close(self) -> None:
        """Destroy the handle; safe to call more than once."""
        if self._handle is None:
            return
        self._handle = None
        self._finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TextEmbedding(_HandleOwner):
    """Dense text embedding model."""

    _create = staticmethod(abi.text_embedding_new)
    _destroy = staticmethod(abi.text_embedding_free)
    _label = "TextEmbedding"

    def embed(self, texts: Sequence[str], batch_size: int = 256) -> list[np.ndarray]:
        vec = _call(abi.text_embedding_embed, self._require_handle(), list(texts), len(texts), batch_size)
        try:
            return marshal.read_dense(vec)
        finally:
            abi.float_array_vec_free(vec)


class SparseTextEmbedding(_HandleOwner):
    """Sparse (SPLADE-style) text embedding model."""

    _create = staticmethod(abi.sparse_text_embedding_new)
    _destroy = staticmethod(abi.sparse_text_embedding_free)
    _label = "SparseTextEmbedding"

    def embed(self, texts: Sequence[str], batch_size: int = 256) -> list[SparseVector]:
        vec = _call(abi.sparse_text_embedding_embed, self._require_handle(), list(texts), len(texts), batch_size)
        try:
            return marshal.read_sparse(vec)
        finally:
            abi.sparse_embedding_vec_free(vec)


class ImageEmbedding(_HandleOwner):
    """Image embedding model; inputs are file paths."""

    _create = staticmethod(abi.image_embedding_new)
    _destroy = staticmethod(abi.image_embedding_free)
    _label = "ImageEmbedding"

    def embed(self, image_paths: Sequence[str], batch_size: int = 16) -> list[np.ndarray]:
        paths = [str(path) for path in image_paths]
        vec = _call(abi.image_embedding_embed, self._require_handle(), paths, len(paths), batch_size)
        try:
            return marshal.read_dense(vec)
        finally:
            abi.float_array_vec_free(vec)


class TextRerank(_HandleOwner):
    """Cross-encoder reranking model."""

    _create = staticmethod(abi.text_rerank_new)
    _destroy = staticmethod(abi.text_rerank_free)
    _label = "TextRerank"

    def rerank(
        self,
        query: str,
        documents: Sequence[str],
        return_documents: bool = False,
        batch_size: int = 64,
    ) -> list[RerankHit]:
        vec = _call(
            abi.text_rerank_rerank,
            self._require_handle(),
            query,
            list(documents),
            len(documents),
            return_documents,
            batch_size,
        )
        try:
            return marshal.read_rerank(vec)
        finally:
            abi.rerank_result_vec_free(vec)


def _list_models(func: Callable) -> list[ModelInfo]:
    vec = func()
    try:
        return marshal.read_model_infos(vec)
    finally:
        abi.model_info_vec_free(vec)


def list_text_embedding_models() -> list[ModelInfo]:
    return _list_models(abi.text_embedding_list_supported_models)


def list_sparse_text_embedding_models() -> list[ModelInfo]:
    return _list_models(abi.sparse_text_embedding_list_supported_models)


def list_image_embedding_models() -> list[ModelInfo]:
    return _list_models(abi.image_embedding_list_supported_models)


def list_text_rerank_models() -> list[ModelInfo]:
    return _list_models(abi.text_rerank_list_supported_models)
