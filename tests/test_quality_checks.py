import pytest

from app.services import quality_checks
from app.services.quality_checks import (
    has_word_repetition,
    validate_poem,
    validate_prediction,
)


@pytest.mark.parametrize(
    "text",
    [
        "aaaa bbbb cccc aaaa",
        "go go go go",
        "discover https://example.com every single day",
        "x" * 100,
        "Sure, here is your prediction that you will be a legend",
    ],
)
def test_prediction_rejections(text):
    result = validate_prediction(text)

    assert not result.accepted
    assert result.reason
    assert result.text is None


def test_prediction_accepts_clean_sentence():
    result = validate_prediction("unlock new creative possibilities every morning")

    assert result.accepted
    assert result.reason is None
    assert result.text == "unlock new creative possibilities every morning"


def test_prediction_uses_first_line_and_strips_arrow():
    result = validate_prediction("  → bring calm focus to late night projects\nExample: more text")

    assert result.accepted
    assert result.text == "bring calm focus to late night projects"


@pytest.mark.parametrize(
    "text, reason",
    [
        ("turn 2026 into your busiest year yet", "long number"),
        ("make you level up in every single way", "canned phrase"),
        ("find new ideas, right?", "question or exclamations"),
        ("spark joy in every project!!", "question or exclamations"),
        ("help you build better habits daily", "assistant vocabulary"),
        ("I think you will grow a lot", "conversational filler"),
        ("bring [brackets] into every sentence", "formatting characters"),
    ],
)
def test_prediction_reason_names_the_rule(text, reason):
    assert validate_prediction(text).reason == reason


def test_word_repetition_catches_phrase_loops():
    assert has_word_repetition("learn to learn to code")
    assert has_word_repetition("ideas grow and ideas flow and ideas")
    assert not has_word_repetition("go go go")
    assert not has_word_repetition("bring calm focus to late night projects")


def test_poem_accepts_three_clean_lines_and_trims_extra():
    raw = "\nSoft keys hum at dawn\nThoughts drift like river leaves\nCode finds its own rest\nA fourth line here too\n"

    result = validate_poem(raw)

    assert result.accepted
    assert result.text == "Soft keys hum at dawn\nThoughts drift like river leaves\nCode finds its own rest"


def test_poem_strips_enumeration_and_drops_noise_lines():
    raw = (
        "Here is a haiku for you\n"
        "1. Soft keys hum at dawn\n"
        "Line 2: Thoughts drift like river leaves\n"
        "Stanza:\n"
        "3) Code finds its own rest"
    )

    result = validate_poem(raw)

    assert result.accepted
    assert result.text.splitlines() == [
        "Soft keys hum at dawn",
        "Thoughts drift like river leaves",
        "Code finds its own rest",
    ]


@pytest.mark.parametrize(
    "raw",
    [
        "Soft keys hum at dawn\nThoughts drift\n",
        "Soft keys hum at dawn\nSmolLM dreams of rivers\nCode finds its own rest",
        "Soft keys hum at dawn\nThoughts drift like leaves\nZzzzz the model sleeps",
        "Soft keys hum at dawn\nThoughts drift like leaves\nsee https://example.com",
        "Soft keys hum at dawn\nword one two three four five six seven eight\nCode finds rest",
        "",
    ],
)
def test_poem_rejections(raw):
    result = validate_poem(raw)

    assert not result.accepted
    assert result.reason


def test_rules_are_independent_predicates():
    assert quality_checks.repeated_characters("sooooo good") == "repeated characters"
    assert quality_checks.repeated_characters("so good") is None
    assert quality_checks.leaked_identity("trained by SmolLM") is not None
    assert quality_checks.run_rules("fine words here", quality_checks.PREDICTION_CHECKS) is None


def test_poem_drops_lines_that_start_with_please():
    assert not validate_poem("Please enjoy this short poem\nSoft keys hum at dawn\nThoughts drift like river leaves").accepted

    result = validate_poem(
        "Please enjoy this short poem\nSoft keys hum at dawn\nThoughts drift like river leaves\nCode finds its own rest"
    )

    assert result.accepted
    assert result.text.splitlines()[0] == "Soft keys hum at dawn"
