"""Engine error taxonomy and the tagged outcome used at the boundary seam."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EngineError(Exception):
    """Base class for every failure surfaced through the error channel."""

    status = "internal"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedModelError(EngineError):
    """Model code is not in the registry for the requested modality."""

    status = "unsupported_model"


class InvalidArgumentError(EngineError):
    """Caller passed an argument the boundary cannot accept."""

    status = "invalid_argument"


class PreprocessingError(EngineError):
    """Raw input could not be turned into an executor batch."""

    status = "preprocessing_failure"


class ExecutorError(EngineError):
    """Inference backend failed or returned malformed output."""

    status = "executor_failure"


class ArtifactError(EngineError):
    """Model artifacts could not be acquired or loaded."""

    status = "artifact_failure"


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Success value or engine error, never both."""

    value: T | None = None
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: EngineError) -> Outcome[T]:
        return cls(error=error)

    @classmethod
    def capture(cls, func: Callable[..., T], *args, **kwargs) -> Outcome[T]:
        """Run ``func`` and tag its result.

        Engine errors pass through unchanged. Anything else is an unexpected
        fault below the boundary; it is logged with its traceback and
        reported as an executor failure.
        """
        try:
            return cls.success(func(*args, **kwargs))
        except EngineError as exc:
            return cls.failure(exc)
        except Exception as exc:
            logger.exception("Unexpected failure below the boundary")
            return cls.failure(ExecutorError(f"Unexpected failure: {exc}"))
