from __future__ import annotations

import logging
from typing import Optional

from flask import Flask

from .config import Config
from .extensions import init_model_backend
from .services.model_backend import ModelBackend


def create_app(
    config_class: type[Config] = Config,
    *,
    model_backend: Optional[ModelBackend] = None,
) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    if not app.config.get("TESTING"):
        logging.basicConfig(level=logging.INFO)

    init_model_backend(app, model_backend)
    register_blueprints(app)

    return app


def register_blueprints(app: Flask) -> None:
    from .main import bp as main_bp

    app.register_blueprint(main_bp)
