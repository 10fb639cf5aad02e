"""
Title canonicalization.

Calendar titles are noisy: numbered sessions ("Boxing 15"), emoji decorations,
case variants and regional-language synonyms all describe the same activity.
canonical_key() collapses them into one grouping key; best_display_name()
picks the title shown to the user for a group.

Both are pure functions of their input and the (immutable) synonym table.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

UNTITLED_KEY = "UNTITLED"
UNTITLED_DISPLAY = "Untitled"

# Exact (case-sensitive) title -> canonical phrase
SYNONYM_MAP: Mapping[str, str] = MappingProxyType(
    {
        "外出就餐": "外出聚餐",
        "DINNER OUT": "外出聚餐",
        "EATING OUT": "外出聚餐",
    }
)

# "Boxing 15", "BOXING-7", "Standup #3"
_TRAILING_NUMBER = re.compile(r"[\s\-#]+[0-9]+\Z")

# Stripped from keys: punctuation..misc symbols, dingbats, private use, joiners and
# variation selectors, pictographs
_KEY_SYMBOLS = re.compile(
    "["
    "\u2011-\u26ff"
    "\u2700-\u27bf"
    "\ue000-\uf8ff"
    "\u200d\ufe0e\ufe0f"
    "\U0001f000-\U0001faff"
    "]"
)

# Marks a title as decorated (preferred for display)
_DISPLAY_SYMBOLS = re.compile(
    "["
    "\u00a9\u00ae"
    "\u2000-\u3300"
    "\U0001f000-\U0001ffff"
    "]"
)

_WHITESPACE = re.compile(r"\s+")


class Canonicalizer:
    """Canonical keys and display names over an injected synonym table."""

    def __init__(self, synonyms: Mapping[str, str] | None = None):
        self.synonyms: Mapping[str, str] = MappingProxyType(
            dict(SYNONYM_MAP if synonyms is None else synonyms)
        )
        self._targets = frozenset(self.synonyms.values())

    def canonical_key(self, title: str | None) -> str:
        """
        Grouping key for a raw title.

        Examples:
            "Boxing 15"  -> "BOXING"
            "BOXING-7"   -> "BOXING"
            "🏋️ Gym"      -> "GYM"
            "DINNER OUT" -> "外出聚餐"
        """
        if not title or not title.strip():
            return UNTITLED_KEY

        target = self.synonyms.get(title)
        if target is not None:
            return target.upper()

        key = title.strip()
        key = _TRAILING_NUMBER.sub("", key)
        key = _KEY_SYMBOLS.sub("", key)
        key = _WHITESPACE.sub(" ", key).strip().upper()

        # Symbol-only titles share the empty key, apart from untitled events
        return key

    def best_display_name(self, titles: Iterable[str]) -> str:
        """
        Pick the display name for a group of titles.

        Priority (first match wins): a synonym target, a title carrying an
        emoji/symbol, an all-caps title with at least one letter (acronyms like
        IELTS), then the longest title with ties going to the first seen.
        The longest-title pick ignores session-numbered titles ("Deep Work 2")
        when an un-numbered one is present.
        """
        candidates = [title for title in titles if title is not None]
        if not candidates:
            return UNTITLED_DISPLAY

        for title in candidates:
            if title in self._targets:
                return title

        for title in candidates:
            if _DISPLAY_SYMBOLS.search(title):
                return title

        for title in candidates:
            if title == title.upper() and title != title.lower():
                return title

        # Session-numbered variants ("Deep Work 2") only win when nothing else exists
        pool = [title for title in candidates if not _TRAILING_NUMBER.search(title.strip())]
        pool = pool or candidates

        best = pool[0]
        for title in pool[1:]:
            if len(title) > len(best):
                best = title
        return best


_default = Canonicalizer()


def canonical_key(title: str | None) -> str:
    """Canonical key using the default synonym table."""
    return _default.canonical_key(title)


def best_display_name(titles: Iterable[str]) -> str:
    """Best display name using the default synonym table."""
    return _default.best_display_name(titles)
