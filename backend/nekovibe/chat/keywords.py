"""Keyword extraction for snippet search."""

import re
from typing import List

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "what", "do", "does", "is", "are", "was", "were",
        "about", "say", "says", "people", "they", "their", "them",
    }
)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")

MAX_KEYWORDS = 5


def extract_keywords(prompt: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Unique lowercase terms longer than 3 characters, stop words removed.

    A presence heuristic only: no stemming and no ranking, terms keep the
    order they appear in.
    """
    words = _PUNCTUATION_RE.sub(" ", (prompt or "").lower()).split()
    keywords = [w for w in words if len(w) > 3 and w not in STOP_WORDS]
    return list(dict.fromkeys(keywords))[:limit]
