"""Service layer for the wrapped recap text generation."""

from __future__ import annotations

from .fallback import fallback_poem, fallback_predictions  # noqa: F401
from .model_backend import (  # noqa: F401
    BackendState,
    BackendUnavailable,
    GenerationFailed,
    ModelBackend,
)
from .wrapped_generation import generate_poem, generate_predictions  # noqa: F401

__all__ = [
    "BackendState",
    "BackendUnavailable",
    "GenerationFailed",
    "ModelBackend",
    "fallback_poem",
    "fallback_predictions",
    "generate_poem",
    "generate_predictions",
]
