"""Collapse the shapes a text-generation call can return into one string."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

ASSISTANT_ROLE = "assistant"


def normalize_output(raw: Any) -> str:
    """Return the model's text from ``raw``; never raises.

    Handled shapes:

    * ``None`` -> ``""``
    * a plain string -> itself
    * pipeline records ``[{"generated_text": ...}]`` -> the first record's text
    * role-tagged messages ``[{"role": ..., "content": ...}, ...]`` -> the
      ``assistant`` turn, or the last entry when no turn is tagged
    * a mapping with ``content`` (or ``generated_text``) -> that field
    * anything else -> ``str(raw)``
    """

    try:
        return _normalize(raw, depth=0)
    except Exception:  # pragma: no cover - str() of exotic objects
        return ""


def _normalize(raw: Any, *, depth: int) -> str:
    if raw is None or depth > 4:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, Mapping):
        return _from_mapping(raw, depth=depth)
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        return _from_sequence(raw, depth=depth)
    if isinstance(raw, (bytes, bytearray)):
        return raw.decode("utf-8", errors="replace")
    content = getattr(raw, "content", None)
    if content is not None:
        return _normalize(content, depth=depth + 1)
    return str(raw)


def _from_mapping(raw: Mapping[str, Any], *, depth: int) -> str:
    if "generated_text" in raw:
        return _normalize(raw["generated_text"], depth=depth + 1)
    if raw.get("content") is not None:
        return _normalize(raw["content"], depth=depth + 1)
    return ""


def _from_sequence(raw: Sequence[Any], *, depth: int) -> str:
    if not raw:
        return ""
    if _is_message_list(raw):
        assistant = next((entry for entry in raw if entry.get("role") == ASSISTANT_ROLE), None)
        text = _normalize(assistant.get("content"), depth=depth + 1) if assistant else ""
        return text or _normalize(raw[-1].get("content"), depth=depth + 1)
    return _normalize(raw[0], depth=depth + 1)


def _is_message_list(raw: Sequence[Any]) -> bool:
    return all(isinstance(entry, Mapping) for entry in raw) and any("role" in entry for entry in raw)
