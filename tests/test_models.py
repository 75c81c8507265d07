import asyncio
import json

import pytest

from app.models import Archetype, Profile, UsageStats
from app.services.wrapped_generation import generate_poem, generate_predictions


def test_from_dict_parses_upstream_payload():
    profile = Profile.from_dict(
        {
            "stats": {"messages_sent": "120", "days_active": 30, "longest_streak": 9},
            "archetype": {"name": " Learner ", "confidence": 0.82},
            "themes": [{"title": "Coding", "score": 0.9}, {"title": "Writing", "score": 0.4}],
            "phrases": {
                "unigrams": [{"phrase": "remix", "count": 14}],
                "bigrams": [{"phrase": "let me", "count": 3}],
            },
        }
    )

    assert profile.stats == UsageStats(messages_sent=120, days_active=30, extra={"longest_streak": 9})
    assert profile.archetype == Archetype(name="Learner", confidence=0.82)
    assert profile.top_theme == "Coding"
    assert profile.second_theme == "Writing"
    assert profile.top_phrase == "remix"
    assert profile.phrases["bigrams"][0].count == 3


def test_from_dict_tolerates_missing_and_malformed_fields():
    profile = Profile.from_dict(
        {
            "stats": "lots",
            "archetype": None,
            "themes": [{"title": ""}, "Coding", {"score": 1}],
            "phrases": {"unigrams": "remix"},
        }
    )

    assert profile.stats.messages_sent == 0
    assert profile.archetype.name == ""
    assert profile.themes == ()
    assert profile.top_theme is None
    assert profile.top_phrase is None


def test_from_dict_accepts_non_mapping():
    assert Profile.from_dict(None) == Profile()
    assert Profile.from_dict(["not", "a", "profile"]) == Profile()


def test_from_dict_treats_non_finite_numbers_as_missing():
    profile = Profile.from_dict(
        json.loads(
            '{"stats": {"messages_sent": Infinity, "days_active": 1e400},'
            ' "archetype": {"name": "Learner", "confidence": NaN},'
            ' "phrases": {"unigrams": [{"phrase": "remix", "count": -Infinity}]}}'
        )
    )

    assert profile.stats.messages_sent == 0
    assert profile.stats.days_active == 0
    assert profile.top_phrase == "remix"
    assert profile.phrases["unigrams"][0].count == 0


def test_generators_are_total_for_non_finite_counts():
    raw_profile = json.loads('{"stats": {"messages_sent": Infinity}, "archetype": {"name": "Learner"}}')

    poem = asyncio.run(generate_poem(raw_profile))
    predictions = asyncio.run(generate_predictions(raw_profile))

    assert poem.startswith("Learner of ")
    assert len(predictions) == 4


def test_profile_is_hashable_and_read_only():
    profile = Profile.from_dict(
        {
            "stats": {"messages_sent": 3, "longest_streak": 2},
            "phrases": {"unigrams": [{"phrase": "remix", "count": 1}]},
        }
    )

    assert hash(profile) == hash(Profile.from_dict({"stats": {"messages_sent": 3}}))
    assert {profile: "cached"}[profile] == "cached"
    with pytest.raises(TypeError):
        profile.phrases["bigrams"] = ()
    with pytest.raises(TypeError):
        profile.stats.extra["longest_streak"] = 10
