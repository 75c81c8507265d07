from __future__ import annotations

import asyncio
from typing import Any, Dict

from flask import current_app, jsonify, request

from ..extensions import get_model_backend
from ..models import Profile
from ..services.fallback import fallback_poem, fallback_predictions
from ..services.wrapped_generation import generate_poem, generate_predictions
from . import bp


def _profile_from_request():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return Profile.from_dict(payload)


def _progress_logger():
    """Return a progress callback that logs through this app from any thread."""

    app = current_app._get_current_object()

    def log_progress(event: Dict[str, Any]) -> None:
        app.logger.info(
            "Loading model: %s%% (%s/%s MB) %s",
            event.get("percent"),
            event.get("loaded"),
            event.get("total"),
            event.get("file") or event.get("status"),
        )

    return log_progress


def _bad_request():
    return jsonify({"error": "Send the profile as a JSON object."}), 400


@bp.route("/capabilities")
def capabilities():
    from text_generator import detect_capabilities

    return jsonify(detect_capabilities())


@bp.route("/model")
def model_status():
    backend = get_model_backend()
    return jsonify({"state": backend.state.value, "ready": backend.is_ready()})


@bp.route("/poem", methods=["POST"])
def poem():
    profile = _profile_from_request()
    if profile is None:
        return _bad_request()

    text = asyncio.run(
        generate_poem(
            profile,
            get_model_backend(),
            _progress_logger(),
            assistant_name=current_app.config["ASSISTANT_NAME"],
        )
    )
    return jsonify({"poem": text})


@bp.route("/predictions", methods=["POST"])
def predictions():
    profile = _profile_from_request()
    if profile is None:
        return _bad_request()

    items = asyncio.run(generate_predictions(profile, get_model_backend(), _progress_logger()))
    return jsonify({"predictions": items})


@bp.route("/fallback", methods=["POST"])
def fallback():
    profile = _profile_from_request()
    if profile is None:
        return _bad_request()
    return jsonify(
        {
            "poem": fallback_poem(profile, assistant_name=current_app.config["ASSISTANT_NAME"]),
            "predictions": fallback_predictions(profile),
        }
    )
