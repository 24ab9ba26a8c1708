"""Conversion between native results and boundary structures.

Every result kind is built bottom-up (inner buffers, then the descriptor
array, then the boxed top-level struct) and released top-down by exactly one
function that knows its shape. An empty result is a box with ``len == 0``
and a NULL descriptor pointer.
"""

from __future__ import annotations

import ctypes
import logging
from collections.abc import Sequence
from ctypes import POINTER, c_float, c_size_t

import numpy as np

from embed_bridge.abi.allocator import Allocator, get_allocator
from embed_bridge.abi.structs import (
    EngineErrorC,
    FloatArray,
    FloatArrayVec,
    ModelInfoC,
    ModelInfoVec,
    RerankResultC,
    RerankResultVec,
    SparseEmbeddingC,
    SparseEmbeddingVec,
    read_string,
)
from embed_bridge.registry import ModelInfo
from embed_bridge.results import RerankHit, SparseVector

logger = logging.getLogger(__name__)


class _Staging:
    """Tracks blocks of one result under construction and rolls them back on failure."""

    def __init__(self, allocator: Allocator) -> None:
        self.allocator = allocator
        self.blocks: list = []

    def __enter__(self) -> _Staging:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            return
        for block in reversed(self.blocks):
            self.allocator.release(block)
        self.blocks.clear()

    def new(self, struct_type):
        block = self.allocator.new(struct_type)
        self.blocks.append(block)
        return block

    def array(self, ctype, count: int):
        block = self.allocator.array(ctype, count)
        self.blocks.append(block)
        return block

    def string(self, text: str):
        block = self.allocator.string(text)
        self.blocks.append(block)
        return block

    def copy_numbers(self, values: np.ndarray, ctype, dtype):
        """Copy a 1-D array into a new boundary buffer; NULL when empty."""
        data = np.ascontiguousarray(values, dtype=dtype).reshape(-1)
        if data.size == 0:
            return POINTER(ctype)(), 0
        buffer = self.array(ctype, data.size)
        ctypes.memmove(buffer, data.ctypes.data, data.nbytes)
        return ctypes.cast(buffer, POINTER(ctype)), int(data.size)


def _descriptors(staging: _Staging, struct_type, items: list):
    if not items:
        return POINTER(struct_type)()
    array = staging.array(struct_type, len(items))
    for position, item in enumerate(items):
        array[position] = item
    return ctypes.cast(array, POINTER(struct_type))


def _release_all(blocks: list) -> None:
    allocator = get_allocator()
    for block in blocks:
        if not block:
            continue
        try:
            allocator.release(block)
        except ValueError as exc:
            logger.warning("Ignoring invalid release: %s", exc)


# Dense vectors


def marshal_dense(vectors: Sequence[np.ndarray]):
    """Build a ``FloatArrayVec`` from per-input vectors."""
    with _Staging(get_allocator()) as staging:
        items = []
        for vector in vectors:
            data, length = staging.copy_numbers(vector, c_float, np.float32)
            items.append(FloatArray(data=data, len=length))
        arrays = _descriptors(staging, FloatArray, items)
        box = staging.new(FloatArrayVec)
        box.arrays = arrays
        box.len = len(items)
        return ctypes.pointer(box)


def float_array_vec_free(vec) -> None:
    """Release a ``FloatArrayVec`` and every vector it references."""
    if not vec:
        return
    box = vec.contents
    blocks = [box.arrays[i].data for i in range(box.len)]
    blocks.append(box.arrays)
    blocks.append(vec)
    _release_all(blocks)


def read_dense(vec) -> list[np.ndarray]:
    """Copy a ``FloatArrayVec`` out into owned numpy arrays."""
    box = vec.contents
    output = []
    for i in range(box.len):
        item = box.arrays[i]
        if item.len:
            output.append(np.ctypeslib.as_array(item.data, shape=(item.len,)).copy())
        else:
            output.append(np.zeros(0, dtype=np.float32))
    return output


# Sparse vectors


def marshal_sparse(vectors: Sequence[SparseVector]):
    """Build a ``SparseEmbeddingVec`` from per-input sparse vectors."""
    with _Staging(get_allocator()) as staging:
        items = []
        for vector in vectors:
            indices, index_count = staging.copy_numbers(vector.indices, c_size_t, np.uintp)
            values, value_count = staging.copy_numbers(vector.values, c_float, np.float32)
            if index_count != value_count:
                raise ValueError("sparse vector index and value counts differ")
            items.append(SparseEmbeddingC(indices=indices, values=values, len=index_count))
        embeddings = _descriptors(staging, SparseEmbeddingC, items)
        box = staging.new(SparseEmbeddingVec)
        box.embeddings = embeddings
        box.len = len(items)
        return ctypes.pointer(box)


def sparse_embedding_vec_free(vec) -> None:
    """Release a ``SparseEmbeddingVec`` with its index and value buffers."""
    if not vec:
        return
    box = vec.contents
    blocks = []
    for i in range(box.len):
        blocks.append(box.embeddings[i].indices)
        blocks.append(box.embeddings[i].values)
    blocks.append(box.embeddings)
    blocks.append(vec)
    _release_all(blocks)


def read_sparse(vec) -> list[SparseVector]:
    box = vec.contents
    output = []
    for i in range(box.len):
        item = box.embeddings[i]
        if item.len:
            indices = np.ctypeslib.as_array(item.indices, shape=(item.len,)).astype(np.int64)
            values = np.ctypeslib.as_array(item.values, shape=(item.len,)).copy()
        else:
            indices = np.zeros(0, dtype=np.int64)
            values = np.zeros(0, dtype=np.float32)
        output.append(SparseVector(indices=indices, values=values))
    return output


# Rerank results


def marshal_rerank(hits: Sequence[RerankHit]):
    """Build a ``RerankResultVec``; documents are copied only when present."""
    with _Staging(get_allocator()) as staging:
        items = []
        for hit in hits:
            document = staging.string(hit.document) if hit.document is not None else POINTER(ctypes.c_char)()
            items.append(RerankResultC(index=hit.index, score=hit.score, document=document))
        results = _descriptors(staging, RerankResultC, items)
        box = staging.new(RerankResultVec)
        box.results = results
        box.len = len(items)
        return ctypes.pointer(box)


def rerank_result_vec_free(vec) -> None:
    """Release a ``RerankResultVec`` and any echoed documents."""
    if not vec:
        return
    box = vec.contents
    blocks = [box.results[i].document for i in range(box.len)]
    blocks.append(box.results)
    blocks.append(vec)
    _release_all(blocks)


def read_rerank(vec) -> list[RerankHit]:
    box = vec.contents
    return [
        RerankHit(
            index=int(box.results[i].index),
            score=float(box.results[i].score),
            document=read_string(box.results[i].document),
        )
        for i in range(box.len)
    ]


# Model listings


def marshal_model_infos(models: Sequence[ModelInfo]):
    """Build a ``ModelInfoVec`` of duplicated model records."""
    with _Staging(get_allocator()) as staging:
        items = []
        for model in models:
            items.append(
                ModelInfoC(
                    model_code=staging.string(model.model_code),
                    description=staging.string(model.description),
                    dim=model.dim,
                )
            )
        array = _descriptors(staging, ModelInfoC, items)
        box = staging.new(ModelInfoVec)
        box.models = array
        box.len = len(items)
        return ctypes.pointer(box)


def model_info_vec_free(vec) -> None:
    """Release a ``ModelInfoVec`` and its strings."""
    if not vec:
        return
    box = vec.contents
    blocks = []
    for i in range(box.len):
        blocks.append(box.models[i].model_code)
        blocks.append(box.models[i].description)
    blocks.append(box.models)
    blocks.append(vec)
    _release_all(blocks)


def read_model_infos(vec) -> list[ModelInfo]:
    box = vec.contents
    return [
        ModelInfo(
            model_code=read_string(box.models[i].model_code) or "",
            description=read_string(box.models[i].description) or "",
            dim=int(box.models[i].dim),
        )
        for i in range(box.len)
    ]


# Errors


def marshal_error(message: str):
    """Allocate one error object carrying ``message``."""
    with _Staging(get_allocator()) as staging:
        try:
            text = staging.string(message)
        except ValueError:
            text = staging.string("Invalid error message")
        error = staging.new(EngineErrorC)
        error.message = text
        return ctypes.pointer(error)


def error_free(error) -> None:
    """Release an error object and its message."""
    if not error:
        return
    _release_all([error.contents.message, error])
