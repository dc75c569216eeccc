"""
Clinic and source-type detection from free text.

Clinics are matched by a fixed table of lowercase tokens; any token found as
a substring of the question selects the clinic. Explicit filters supplied by
the caller always win over detection.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..records import BLOG_POST, GOOGLE_REVIEW, PRESS_ARTICLE, SOCIAL_POST


@dataclass(frozen=True)
class ClinicMatcher:
    name: str
    tokens: Tuple[str, ...]


CLINIC_MATCHERS: Tuple[ClinicMatcher, ...] = (
    ClinicMatcher("Neko Health Marylebone", ("marylebone", "w1")),
    ClinicMatcher("Neko Health Spitalfields", ("spitalfields", "liverpool street")),
    ClinicMatcher("Neko Health Manchester", ("manchester", "lincoln square")),
    ClinicMatcher(
        "Neko Health Ostermalmstorg",
        ("östermalm", "ostermalm", "ostermalmstorg", "stockholm", "sweden"),
    ),
    ClinicMatcher("Neko Health Covent Garden", ("covent garden",)),
)

CLINIC_NAMES = [m.name for m in CLINIC_MATCHERS]


def detect_clinics(
    text: str, matchers: Sequence[ClinicMatcher] = CLINIC_MATCHERS
) -> List[str]:
    """Names of every clinic with a token contained in ``text``."""
    lowered = (text or "").lower()
    return [m.name for m in matchers if any(token in lowered for token in m.tokens)]


def detect_source_type(prompt: str, sources: Sequence[str]) -> Optional[str]:
    """Feedback source type implied by the selected categories or the question."""
    lowered = (prompt or "").lower()
    if "reviews" in sources or "review" in lowered:
        return GOOGLE_REVIEW
    if "articles" in sources or "article" in lowered or "press" in lowered:
        return PRESS_ARTICLE
    if "social" in sources or "social" in lowered or "post" in lowered:
        return SOCIAL_POST
    if "blog" in lowered:
        return BLOG_POST
    return None
