"""Few-shot prompt templates for the recap poem and predictions.

Both builders are pure: the same profile always renders the same prompts and
nothing here touches the model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ..models import Profile

POEM_TEMPLATE = """Write a 3-line haiku about {theme}. Keep it simple and natural.

Morning light arrives
Coffee steams beside keyboard
New ideas bloom

Autumn leaves falling
Code flows like a gentle stream
Wisdom takes its time

{lead} inspires me"""

PREDICTION_TEMPLATE = """Complete each sentence with a short, fun prediction (5-15 words):

Example: In 2026, your Coding skills will → unlock new creative possibilities
Example: As a Sage, you'll discover → the joy of mentoring others
Example: Your favorite word "debug" will → become your superpower at work

Now complete: {start} →"""


@dataclass(frozen=True)
class PredictionPrompt:
    """One prediction unit: the sentence opening and the prompt completing it."""

    start: str
    prompt: str


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def poem_theme(profile: Profile) -> str:
    themes = [theme.title for theme in profile.themes[:3] if theme.title]
    return themes[0] if themes else "various topics"


def build_poem_prompt(profile: Profile) -> str:
    theme = poem_theme(profile)
    return POEM_TEMPLATE.format(theme=theme, lead=capitalize_first(theme))


def prediction_starts(profile: Profile) -> List[str]:
    """Sentence openings in fixed order: theme, archetype, phrase, second theme."""

    top_theme = profile.top_theme or "learning"
    second_theme = profile.second_theme or "creating"
    style = profile.archetype.name or "Explorer"
    top_word = profile.top_phrase or "ideas"
    return [
        f"In 2026, your {top_theme} skills will",
        f"As a {style}, you'll discover",
        f'Your favorite word "{top_word}" will',
        f"Next year in {second_theme}, you'll",
    ]


def build_prediction_prompts(profile: Profile) -> List[PredictionPrompt]:
    return [
        PredictionPrompt(start=start, prompt=PREDICTION_TEMPLATE.format(start=start))
        for start in prediction_starts(profile)
    ]
