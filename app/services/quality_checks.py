"""Heuristic quality checks for small-model recap text.

A tiny local model produces a lot of unusable output: it echoes prompt
markup, talks to the user, names itself, loops on a word.  Each heuristic
here is a named rule returning a rejection reason (or ``None`` when the text
passes), so the rules can be tested one by one and combined per unit kind.

Borderline text is rejected; the caller retries.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

Rule = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: Optional[str] = None
    text: Optional[str] = None

    @classmethod
    def accept(cls, text: str) -> "ValidationResult":
        return cls(accepted=True, text=text)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class ShapeBounds:
    min_chars: int
    max_chars: int
    min_words: int
    max_words: int


POEM_LINE_BOUNDS = ShapeBounds(min_chars=4, max_chars=50, min_words=2, max_words=8)
PREDICTION_BOUNDS = ShapeBounds(min_chars=5, max_chars=80, min_words=3, max_words=20)
POEM_LINE_COUNT = 3

_ENUMERATION_PREFIX = re.compile(r"^(\d+[.):]?\s*|Line\s*\d+:?\s*)", re.IGNORECASE)
_STRUCTURAL_NOISE = re.compile(r"[\[\]<>{}|\\]")
_POEM_META_PREFIX = re.compile(r"^(example|haiku|write|now|here|sure|please|i |i'm|okay|let)", re.IGNORECASE)
_PREDICTION_META_PREFIX = re.compile(r"^(I |I'm |I'll |I've |Here|Please|Sure|Let me)", re.IGNORECASE)
_LEAKED_IDENTITY = re.compile(r"R\.I\.|Refract|Cléau|SmolLM|https?:", re.IGNORECASE)
_REPEATED_CHARACTER = re.compile(r"(.)\1{3,}")
_LONG_NUMBER = re.compile(r"\d{3,}")
_CANNED_PHRASE = re.compile(r"level up|you will be|you'll be a \d", re.IGNORECASE)
_QUESTION_OR_SHOUT = re.compile(r"\?|!{2,}")
_ASSISTANT_REGISTER = re.compile(r"help|assist|provide|question", re.IGNORECASE)
_LEADING_ARROW = re.compile(r"^→\s*")


def _words(text: str) -> List[str]:
    return text.split()


# -- rules -------------------------------------------------------------------


def char_bounds(bounds: ShapeBounds) -> Rule:
    def check(text: str) -> Optional[str]:
        if not bounds.min_chars <= len(text) <= bounds.max_chars:
            return f"length {len(text)} outside {bounds.min_chars}-{bounds.max_chars} chars"
        return None

    return check


def word_bounds(bounds: ShapeBounds) -> Rule:
    def check(text: str) -> Optional[str]:
        count = len(_words(text))
        if not bounds.min_words <= count <= bounds.max_words:
            return f"{count} words outside {bounds.min_words}-{bounds.max_words}"
        return None

    return check


def structural_noise(*, reject_trailing_colon: bool) -> Rule:
    def check(text: str) -> Optional[str]:
        if _STRUCTURAL_NOISE.search(text):
            return "formatting characters"
        if reject_trailing_colon and text.endswith(":"):
            return "trailing colon"
        return None

    return check


def meta_text(pattern: "re.Pattern[str]") -> Rule:
    def check(text: str) -> Optional[str]:
        if pattern.match(text):
            return "conversational filler"
        return None

    return check


def leaked_identity(text: str) -> Optional[str]:
    if _LEAKED_IDENTITY.search(text):
        return "model self-reference or URL"
    return None


def repeated_characters(text: str) -> Optional[str]:
    if _REPEATED_CHARACTER.search(text):
        return "repeated characters"
    return None


def has_word_repetition(text: str) -> bool:
    """True when ``text`` loops on a word or a two-word phrase.

    A token of three or more characters seen three times counts as a loop, as
    do two identical adjacent word pairs ("learn to learn to").  Texts under
    four words are never flagged.
    """

    words = text.lower().split()
    if len(words) < 4:
        return False

    counts: Counter = Counter()
    for word in words:
        if len(word) < 3:
            continue
        counts[word] += 1
        if counts[word] >= 3:
            return True

    for index in range(len(words) - 3):
        if words[index : index + 2] == words[index + 2 : index + 4]:
            return True

    return False


def word_repetition(text: str) -> Optional[str]:
    if has_word_repetition(text):
        return "word repetition"
    return None


def prediction_bans(text: str) -> Optional[str]:
    if _LONG_NUMBER.search(text):
        return "long number"
    if _CANNED_PHRASE.search(text):
        return "canned phrase"
    if _QUESTION_OR_SHOUT.search(text):
        return "question or exclamations"
    if _ASSISTANT_REGISTER.search(text):
        return "assistant vocabulary"
    return None


# -- per-kind chains -----------------------------------------------------------

# Lines failing these are dropped from a poem candidate before it is judged.
POEM_LINE_FILTERS: Tuple[Rule, ...] = (
    char_bounds(POEM_LINE_BOUNDS),
    meta_text(_POEM_META_PREFIX),
    structural_noise(reject_trailing_colon=True),
)

# Every surviving poem line must pass these or the whole candidate is rejected.
POEM_LINE_CHECKS: Tuple[Rule, ...] = (
    leaked_identity,
    repeated_characters,
    word_bounds(POEM_LINE_BOUNDS),
)

PREDICTION_CHECKS: Tuple[Rule, ...] = (
    char_bounds(PREDICTION_BOUNDS),
    word_bounds(PREDICTION_BOUNDS),
    structural_noise(reject_trailing_colon=False),
    meta_text(_PREDICTION_META_PREFIX),
    leaked_identity,
    repeated_characters,
    word_repetition,
    prediction_bans,
)


def run_rules(text: str, rules: Sequence[Rule]) -> Optional[str]:
    """Return the first rejection reason produced by ``rules``."""
    for rule in rules:
        reason = rule(text)
        if reason:
            return reason
    return None


def clean_poem_lines(raw: str) -> List[str]:
    lines = [line.strip() for line in raw.strip().split("\n")]
    lines = [_ENUMERATION_PREFIX.sub("", line) for line in lines]
    return [line for line in lines if run_rules(line, POEM_LINE_FILTERS) is None]


def validate_poem(raw: str) -> ValidationResult:
    """Accept a three-line poem from ``raw`` or explain why not."""

    lines = clean_poem_lines(raw)
    for line in lines:
        reason = run_rules(line, POEM_LINE_CHECKS)
        if reason:
            return ValidationResult.reject(f"{reason}: {line!r}")
    if len(lines) < POEM_LINE_COUNT:
        return ValidationResult.reject(f"only {len(lines)} usable lines")
    return ValidationResult.accept("\n".join(lines[:POEM_LINE_COUNT]))


def extract_completion(raw: str) -> str:
    """First line of ``raw`` with any echoed continuation arrow removed."""
    first_line = raw.strip().split("\n")[0].strip()
    return _LEADING_ARROW.sub("", first_line).strip()


def validate_prediction(raw: str) -> ValidationResult:
    """Accept a one-line prediction completion from ``raw`` or explain why not."""

    completion = extract_completion(raw)
    reason = run_rules(completion, PREDICTION_CHECKS)
    if reason:
        return ValidationResult.reject(reason)
    return ValidationResult.accept(completion)
