"""Poem and prediction generation with bounded retries and template fallback.

Each piece of recap text is a :class:`GenerationUnit`.  A unit is attempted up
to :data:`MAX_ATTEMPTS` times: prompt the model, normalise the reply, run the
quality checks for the unit's kind.  The first accepted candidate wins; when
every attempt is rejected or fails, the unit's template fallback is used
instead.  Units never share a retry budget.

If the model cannot be loaded at all, the whole batch goes straight to the
templates.  Neither public coroutine ever raises for a generation problem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..models import Profile
from .fallback import DEFAULT_ASSISTANT_NAME, fallback_poem, fallback_predictions
from .model_backend import BackendUnavailable, ModelBackend, ProgressCallback
from .prompt_builder import build_poem_prompt, build_prediction_prompts
from .quality_checks import ValidationResult, validate_poem, validate_prediction

LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
POEM_MAX_TOKENS = 40
PREDICTION_MAX_TOKENS = 20
LOG_PREVIEW_CHARS = 100

ProfileInput = Union[Profile, Mapping[str, Any], None]


class UnitKind(str, Enum):
    POEM = "poem-line-set"
    PREDICTION = "prediction-sentence"


@dataclass(frozen=True)
class GenerationUnit:
    kind: UnitKind
    prompt: str
    max_tokens: int
    fallback: Callable[[], str]
    prefix: str = ""

    def compose(self, accepted: str) -> str:
        return f"{self.prefix} {accepted}" if self.prefix else accepted


@dataclass(frozen=True)
class Candidate:
    text: str
    attempt: int
    unit: GenerationUnit


VALIDATORS: Dict[UnitKind, Callable[[str], ValidationResult]] = {
    UnitKind.POEM: validate_poem,
    UnitKind.PREDICTION: validate_prediction,
}


def _coerce_profile(profile: ProfileInput) -> Profile:
    if isinstance(profile, Profile):
        return profile
    return Profile.from_dict(profile)


def poem_unit(profile: Profile, *, assistant_name: str = DEFAULT_ASSISTANT_NAME) -> GenerationUnit:
    # The same prompt is reused for every attempt.
    return GenerationUnit(
        kind=UnitKind.POEM,
        prompt=build_poem_prompt(profile),
        max_tokens=POEM_MAX_TOKENS,
        fallback=lambda: fallback_poem(profile, assistant_name=assistant_name),
    )


def prediction_units(profile: Profile) -> List[GenerationUnit]:
    units = []
    for index, item in enumerate(build_prediction_prompts(profile)):
        units.append(
            GenerationUnit(
                kind=UnitKind.PREDICTION,
                prompt=item.prompt,
                max_tokens=PREDICTION_MAX_TOKENS,
                fallback=lambda index=index: fallback_predictions(profile)[index],
                prefix=item.start,
            )
        )
    return units


async def run_unit(
    backend: ModelBackend,
    unit: GenerationUnit,
    *,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """Drive ``unit`` to an accepted candidate or its fallback.

    :class:`BackendUnavailable` propagates so the caller can abandon the rest
    of its batch; any other failure only costs the current attempt.
    """

    validate = VALIDATORS[unit.kind]
    for attempt in range(1, max_attempts + 1):
        try:
            raw = await backend.generate(unit.prompt, unit.max_tokens)
        except BackendUnavailable:
            raise
        except Exception as exc:
            LOGGER.warning("%s attempt %d/%d failed: %s", unit.kind.value, attempt, max_attempts, exc)
            continue

        candidate = Candidate(text=raw, attempt=attempt, unit=unit)
        result = validate(candidate.text)
        if result.accepted and result.text:
            LOGGER.info("%s generated on attempt %d", unit.kind.value, attempt)
            return unit.compose(result.text)

        LOGGER.info(
            "%s attempt %d/%d invalid (%s): %r",
            unit.kind.value,
            attempt,
            max_attempts,
            result.reason,
            candidate.text[:LOG_PREVIEW_CHARS],
        )

    LOGGER.warning("All %s attempts failed, using fallback", unit.kind.value)
    return unit.fallback()


async def run_batch(
    backend: Optional[ModelBackend],
    units: Sequence[GenerationUnit],
    on_progress: Optional[ProgressCallback] = None,
) -> List[str]:
    """Run ``units`` in order, one output per unit."""

    if backend is None:
        return [unit.fallback() for unit in units]

    try:
        await backend.acquire(on_progress)
    except BackendUnavailable as exc:
        LOGGER.warning("Text generation unavailable; using fallback text. Error: %s", exc)
        return [unit.fallback() for unit in units]

    results: List[str] = []
    for index, unit in enumerate(units):
        try:
            results.append(await run_unit(backend, unit))
        except BackendUnavailable as exc:
            LOGGER.warning("Text generation became unavailable; using fallback text. Error: %s", exc)
            results.extend(remaining.fallback() for remaining in units[index:])
            break
    return results


async def generate_poem(
    profile: ProfileInput,
    backend: Optional[ModelBackend] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> str:
    """Return a three-line poem about the profile's top theme."""

    resolved = _coerce_profile(profile)
    (poem,) = await run_batch(backend, [poem_unit(resolved, assistant_name=assistant_name)], on_progress)
    return poem


async def generate_predictions(
    profile: ProfileInput,
    backend: Optional[ModelBackend] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[str]:
    """Return four one-sentence predictions in theme, archetype, phrase, second-theme order."""

    resolved = _coerce_profile(profile)
    predictions = await run_batch(backend, prediction_units(resolved), on_progress)
    LOGGER.info("Predictions generated: %s", predictions)
    return predictions
