from __future__ import annotations

import re
from typing import Optional

# Checked in this order; the first level whose synonyms contain a candidate wins.
PRIORITY_SYNONYMS = (
    ("high", frozenset({
        "high", "urgent", "critical", "important", "asap", "top", "highest",
        "rush", "immediate", "immediately",
    })),
    ("medium", frozenset({
        "medium", "normal", "regular", "standard", "default", "moderate", "average",
    })),
    ("low", frozenset({
        "low", "later", "someday", "eventually", "whenever", "optional", "defer",
        "minor", "lowest", "when possible",
    })),
)

_NON_LETTERS = re.compile(r"[^a-z]+")


def _candidates(word: str) -> list[str]:
    phrase = _NON_LETTERS.sub(" ", word.lower()).strip()
    if not phrase:
        return []
    without_priority = " ".join(t for t in phrase.split() if t != "priority")
    return [phrase, without_priority, *phrase.split()]


def parse_priority_word(word: Optional[str]) -> Optional[str]:
    """Map a free-text priority word or phrase to low/medium/high.

    Tries the whole phrase, then the phrase without "priority", then each
    token. Returns None when nothing matches; defaulting is the caller's job.
    """
    if not word:
        return None
    for candidate in _candidates(word):
        for level, synonyms in PRIORITY_SYNONYMS:
            if candidate in synonyms:
                return level
    return None
