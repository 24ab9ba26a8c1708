"""Fixed-layout structures handed across the boundary.

Layouts follow the C declarations::

    typedef struct { char* message; } EngineError;
    typedef struct { float* data; size_t len; } FloatArray;
    typedef struct { FloatArray* arrays; size_t len; } FloatArrayVec;
    typedef struct { size_t* indices; float* values; size_t len; } SparseEmbedding;
    typedef struct { SparseEmbedding* embeddings; size_t len; } SparseEmbeddingVec;
    typedef struct { size_t index; float score; char* document; } RerankResult;
    typedef struct { RerankResult* results; size_t len; } RerankResultVec;
    typedef struct { char* model_code; char* description; size_t dim; } ModelInfo;
    typedef struct { ModelInfo* models; size_t len; } ModelInfoVec;

Strings are ``POINTER(c_char)`` rather than ``c_char_p`` so the address
survives a field read and can be handed back to the allocator.
"""

from __future__ import annotations

import ctypes
from ctypes import POINTER, Structure, c_char, c_float, c_size_t


class EngineErrorC(Structure):
    _fields_ = [("message", POINTER(c_char))]


class FloatArray(Structure):
    _fields_ = [("data", POINTER(c_float)), ("len", c_size_t)]


class FloatArrayVec(Structure):
    _fields_ = [("arrays", POINTER(FloatArray)), ("len", c_size_t)]


class SparseEmbeddingC(Structure):
    _fields_ = [
        ("indices", POINTER(c_size_t)),
        ("values", POINTER(c_float)),
        ("len", c_size_t),
    ]


class SparseEmbeddingVec(Structure):
    _fields_ = [("embeddings", POINTER(SparseEmbeddingC)), ("len", c_size_t)]


class RerankResultC(Structure):
    _fields_ = [
        ("index", c_size_t),
        ("score", c_float),
        ("document", POINTER(c_char)),
    ]


class RerankResultVec(Structure):
    _fields_ = [("results", POINTER(RerankResultC)), ("len", c_size_t)]


class ModelInfoC(Structure):
    _fields_ = [
        ("model_code", POINTER(c_char)),
        ("description", POINTER(c_char)),
        ("dim", c_size_t),
    ]


class ModelInfoVec(Structure):
    _fields_ = [("models", POINTER(ModelInfoC)), ("len", c_size_t)]


ErrorSlot = POINTER(POINTER(EngineErrorC))


def new_error_slot():
    """Return ``(slot, out)``: ``slot`` is NULL until a failing call fills it."""
    slot = POINTER(EngineErrorC)()
    return slot, ctypes.pointer(slot)


def read_string(pointer) -> str | None:
    """Decode a NUL-terminated boundary string, ``None`` for NULL."""
    if not pointer:
        return None
    return ctypes.string_at(pointer).decode("utf-8")
