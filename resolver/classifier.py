from __future__ import annotations

import json
from typing import Iterable

# Declaration order is the rendering order.
LANGUAGE_FLAGS: dict[str, str] = {
    "swedish": "🇸🇪",
    "norwegian": "🇳🇴",
    "finnish": "🇫🇮",
    "danish": "🇩🇰",
    "icelandic": "🇮🇸",
    "english": "🇬🇧",
    "german": "🇩🇪",
    "french": "🇫🇷",
}
VOCABULARY: tuple[str, ...] = tuple(LANGUAGE_FLAGS)

_FLAG_TO_LANGUAGE: dict[str, str] = {flag: lang for lang, flag in LANGUAGE_FLAGS.items()}

# Some reporters send this instead of an empty flag string.
NOT_FOUND_SYMBOL = "❌"


class IndicatorSet(frozenset):
    """
    Set of language tokens from VOCABULARY. Iteration order of a frozenset
    is arbitrary, so anything user-facing goes through ordered()/symbols().
    """

    def __new__(cls, languages: Iterable[str] = ()):
        langs = [str(l).strip().lower() for l in languages]
        unknown = [l for l in langs if l not in LANGUAGE_FLAGS]
        if unknown:
            raise ValueError(f"Unknown language token(s): {', '.join(unknown)}")
        return super().__new__(cls, langs)

    def ordered(self) -> tuple[str, ...]:
        return tuple(lang for lang in VOCABULARY if lang in self)

    def symbols(self) -> str:
        return "".join(LANGUAGE_FLAGS[lang] for lang in self.ordered())

    @classmethod
    def from_symbols(cls, flags: str) -> "IndicatorSet":
        """
        Parse a flag string produced by symbols().

        Flags are consumed two code points at a time: naive substring
        search would find 🇮🇸 inside 🇫🇮🇸🇪.
        """
        text = "".join((flags or "").split())
        if text == NOT_FOUND_SYMBOL:
            return cls()
        langs: list[str] = []
        i = 0
        while i < len(text):
            chunk = text[i:i + 2]
            lang = _FLAG_TO_LANGUAGE.get(chunk)
            if lang is None:
                raise ValueError(f"Unrecognised flag sequence at offset {i}: {chunk!r}")
            langs.append(lang)
            i += 2
        return cls(langs)

    def __repr__(self) -> str:
        return f"IndicatorSet({list(self.ordered())!r})"


def classify(text: str) -> IndicatorSet:
    """Case-insensitive substring match of every vocabulary token."""
    if not text:
        return IndicatorSet()
    lower = text.lower()
    return IndicatorSet(lang for lang in VOCABULARY if lang in lower)


def reporter_vocabulary_json() -> str:
    """Vocabulary as JSON pairs, for the script that classifies inside a render."""
    return json.dumps([[lang, flag] for lang, flag in LANGUAGE_FLAGS.items()], ensure_ascii=False)
