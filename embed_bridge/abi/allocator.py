"""Accounting allocator behind every buffer handed across the boundary."""

from __future__ import annotations

import ctypes
import threading
from ctypes import POINTER, c_char


def address_of(block) -> int:
    """Address of a ctypes object or of what a ctypes pointer points at."""
    if isinstance(block, int):
        return block
    if isinstance(block, ctypes._Pointer):
        return ctypes.cast(block, ctypes.c_void_p).value or 0
    return ctypes.addressof(block)


class Allocator:
    """Keeps boundary buffers alive until their matching release.

    A block stays reachable from ``_live`` between allocation and release,
    so the memory a caller holds a raw pointer to cannot be collected. The
    counters let tests check that every allocation has exactly one release.
    """

    def __init__(self) -> None:
        self._live: dict[int, object] = {}
        self._lock = threading.Lock()
        self.allocations = 0
        self.releases = 0

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def _track(self, block):
        with self._lock:
            self._live[ctypes.addressof(block)] = block
            self.allocations += 1
        return block

    def new(self, struct_type):
        """Allocate one zeroed structure."""
        return self._track(struct_type())

    def array(self, ctype, count: int):
        """Allocate a zeroed array of ``count >= 1`` elements."""
        if count < 1:
            raise ValueError("array allocation needs at least one element")
        return self._track((ctype * count)())

    def string(self, text: str):
        """Allocate a NUL-terminated UTF-8 copy of ``text``."""
        encoded = text.encode("utf-8")
        if b"\x00" in encoded:
            raise ValueError("string contains an interior NUL byte")
        buffer = self._track(ctypes.create_string_buffer(encoded))
        return ctypes.cast(buffer, POINTER(c_char))

    def release(self, block) -> None:
        """Release a block previously returned by this allocator."""
        address = address_of(block)
        with self._lock:
            if self._live.pop(address, None) is None:
                raise ValueError(f"release of unknown or already released block 0x{address:x}")
            self.releases += 1


_allocator = Allocator()


def get_allocator() -> Allocator:
    return _allocator


def set_allocator(allocator: Allocator) -> Allocator:
    """Swap the process allocator, returning the previous one (test helper)."""
    global _allocator
    previous, _allocator = _allocator, allocator
    return previous
