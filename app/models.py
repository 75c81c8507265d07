"""Read-only profile records consumed by the recap generators.

The profile is produced by the upstream conversation-archive analysis and
arrives as JSON.  :meth:`Profile.from_dict` accepts whatever shape that stage
emits and never raises: missing or ill-typed fields become empty values, which
the prompt and fallback builders then replace with their own defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

PHRASE_ORDERS = ("unigrams", "bigrams", "trigrams")


@dataclass(frozen=True)
class UsageStats:
    messages_sent: int = 0
    days_active: int = 0
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))


@dataclass(frozen=True)
class Archetype:
    name: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class Theme:
    title: str
    score: float = 0.0


@dataclass(frozen=True)
class Phrase:
    phrase: str
    count: int = 0


@dataclass(frozen=True)
class Profile:
    stats: UsageStats = field(default_factory=UsageStats)
    archetype: Archetype = field(default_factory=Archetype)
    themes: Tuple[Theme, ...] = ()
    phrases: Mapping[str, Tuple[Phrase, ...]] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "phrases", MappingProxyType(dict(self.phrases)))

    @property
    def top_theme(self) -> Optional[str]:
        return self.theme_title(0)

    @property
    def second_theme(self) -> Optional[str]:
        return self.theme_title(1)

    @property
    def top_phrase(self) -> Optional[str]:
        unigrams = self.phrases.get("unigrams") or ()
        return unigrams[0].phrase if unigrams else None

    def theme_title(self, index: int) -> Optional[str]:
        if index < len(self.themes):
            return self.themes[index].title or None
        return None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Profile":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            stats=_parse_stats(data.get("stats")),
            archetype=_parse_archetype(data.get("archetype")),
            themes=_parse_themes(data.get("themes")),
            phrases=_parse_phrases(data.get("phrases")),
        )


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_stats(raw: Any) -> UsageStats:
    if not isinstance(raw, Mapping):
        return UsageStats()
    extra = {key: value for key, value in raw.items() if key not in ("messages_sent", "days_active")}
    return UsageStats(
        messages_sent=_as_int(raw.get("messages_sent")),
        days_active=_as_int(raw.get("days_active")),
        extra=extra,
    )


def _parse_archetype(raw: Any) -> Archetype:
    if not isinstance(raw, Mapping):
        return Archetype()
    return Archetype(name=_as_text(raw.get("name")), confidence=_as_float(raw.get("confidence")))


def _parse_themes(raw: Any) -> Tuple[Theme, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    themes = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        title = _as_text(item.get("title"))
        if not title:
            continue
        themes.append(Theme(title=title, score=_as_float(item.get("score"))))
    return tuple(themes)


def _parse_phrases(raw: Any) -> Dict[str, Tuple[Phrase, ...]]:
    if not isinstance(raw, Mapping):
        return {}
    phrases: Dict[str, Tuple[Phrase, ...]] = {}
    for order in PHRASE_ORDERS:
        entries = raw.get(order)
        if not isinstance(entries, (list, tuple)):
            continue
        parsed = []
        for item in entries:
            if not isinstance(item, Mapping):
                continue
            text = _as_text(item.get("phrase"))
            if text:
                parsed.append(Phrase(phrase=text, count=_as_int(item.get("count"))))
        phrases[order] = tuple(parsed)
    return phrases
