"""Modality-specific input transforms applied to each chunk."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from embed_bridge.errors import PreprocessingError

logger = logging.getLogger(__name__)


def preprocess_texts(chunk: Sequence[str]) -> list[str]:
    """Texts go to the executor as-is; tokenization happens there."""
    batch = []
    for text in chunk:
        if not isinstance(text, str):
            raise PreprocessingError(f"Expected text input, got {type(text).__name__}")
        batch.append(text)
    return batch


def load_image(path: str) -> Image.Image:
    """Decode one image file into an RGB image."""
    try:
        with Image.open(Path(path)) as image:
            image.load()
            return image.convert("RGB")
    except (FileNotFoundError, UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Image preprocessing failed for %s: %s", path, exc)
        raise PreprocessingError(f"Failed to load image '{path}': {exc}") from exc


def preprocess_images(chunk: Sequence[str]) -> list[Image.Image]:
    return [load_image(path) for path in chunk]


def pair_preprocessor(query: str) -> Callable[[Sequence[str]], list[tuple[str, str]]]:
    """Build a preprocessor that pairs each document with ``query``."""

    def preprocess_pairs(chunk: Sequence[str]) -> list[tuple[str, str]]:
        return [(query, document) for document in preprocess_texts(chunk)]

    return preprocess_pairs
