"""Opaque integer tokens bound to loaded engines.

A handle is created Ready, used any number of times and destroyed once.
The table only synchronizes its own bookkeeping: two threads calling
through the same handle at once must be serialized by the caller.
Destroying a handle twice, or using it after destruction, is a caller
contract violation.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import TypeVar

from embed_bridge.engines import Engine
from embed_bridge.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Engine)


class HandleTable:
    """Maps live handle tokens to exclusively owned engines."""

    def __init__(self) -> None:
        self._engines: dict[int, Engine] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)

    def register(self, engine: Engine) -> int:
        with self._lock:
            token = next(self._tokens)
            self._engines[token] = engine
        logger.debug("Handle %d bound to %s model %s", token, engine.modality.value, engine.model_code)
        return token

    def resolve(self, handle: int | None, kind: type[E]) -> E:
        """Return the Ready engine behind ``handle``."""
        if not handle:
            raise InvalidArgumentError("Null pointer provided")
        with self._lock:
            engine = self._engines.get(handle)
        if engine is None:
            raise InvalidArgumentError(f"Invalid or destroyed handle {handle}")
        if not isinstance(engine, kind):
            raise InvalidArgumentError(
                f"Handle {handle} refers to a {engine.modality.value} model, "
                f"expected a {kind.modality.value} model"
            )
        return engine

    def destroy(self, handle: int | None, kind: type[Engine]) -> None:
        """Move a handle to Destroyed and release its engine."""
        if not handle:
            return
        with self._lock:
            engine = self._engines.get(handle)
            if engine is None or not isinstance(engine, kind):
                logger.warning("Ignoring destroy of unknown %s handle %s", kind.modality.value, handle)
                return
            del self._engines[handle]
        engine.close()

    def clear(self) -> None:
        """Destroy every live handle (test and shutdown helper)."""
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            engine.close()


handles = HandleTable()
