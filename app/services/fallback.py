"""Template recap text used when the model output cannot be trusted."""

from __future__ import annotations

from typing import List

from ..models import Profile
from .prompt_builder import capitalize_first

DEFAULT_ASSISTANT_NAME = "Claude"


def fallback_poem(profile: Profile, *, assistant_name: str = DEFAULT_ASSISTANT_NAME) -> str:
    style = profile.archetype.name.lower() or "seeker"
    top_theme = (profile.top_theme or "").lower() or "ideas"
    top_word = profile.top_phrase or "wonder"
    return "\n".join(
        [
            f"{capitalize_first(style)} of {top_theme}",
            f"{capitalize_first(top_word)} guides the path forward",
            f"{assistant_name or DEFAULT_ASSISTANT_NAME} lights the way",
        ]
    )


def fallback_predictions(profile: Profile) -> List[str]:
    top_theme = profile.top_theme or "exploring ideas"
    second_theme = profile.second_theme or "creative projects"
    style = profile.archetype.name or "Ranger"
    message_count = profile.stats.messages_sent
    top_word = profile.top_phrase or "curiosity"
    return [
        f"Your {top_theme} obsession will reach new heights in 2026",
        f"As a true {style}, you'll discover at least 3 new AI use cases",
        f"Your message count will double - {message_count * 2}+ messages incoming",
        f'"{top_word}" will become your catchphrase in {second_theme} discussions',
    ]
