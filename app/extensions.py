from __future__ import annotations

from flask import Flask, current_app

from .services.model_backend import ModelBackend

EXTENSION_KEY = "model_backend"


def init_model_backend(app: Flask, backend: ModelBackend | None = None) -> ModelBackend:
    """Attach one :class:`ModelBackend` to ``app``, built from its config unless given."""

    if backend is None:
        backend = ModelBackend.from_config(app.config)
    app.extensions[EXTENSION_KEY] = backend
    return backend


def get_model_backend() -> ModelBackend:
    return current_app.extensions[EXTENSION_KEY]
