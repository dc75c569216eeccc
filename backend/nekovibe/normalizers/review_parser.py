"""
Google review normalizer.

Turns a raw review payload (as assembled by the Google Places job) into a
:class:`~nekovibe.records.GoogleReview`, or returns None when the payload
cannot be used. Never raises.

Rating policy: numeric ratings are clamped into [1, 5] and rounded to the
nearest integer; string ratings are parsed as floats first. A missing or
unparseable rating rejects the review.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..records import UNKNOWN_CLINIC, GoogleReview
from .text_utils import clean_text, parse_datetime

logger = logging.getLogger(__name__)

_CONSUMED_KEYS = {
    "external_id",
    "clinic_place_id",
    "clinic_name",
    "author_name",
    "author_url",
    "rating",
    "text",
    "published_at",
    "response_text",
    "response_published_at",
}


def _normalize_rating(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if number != number:  # NaN
        return None
    return int(round(max(1.0, min(5.0, number))))


def parse_google_review(raw: Dict[str, Any]) -> Optional[GoogleReview]:
    """Parse and normalize raw Google review data."""
    try:
        external_id = raw.get("external_id")
        clinic_place_id = raw.get("clinic_place_id")
        if not external_id or not clinic_place_id:
            logger.warning("Review missing external_id or clinic_place_id: %r", raw)
            return None

        rating = _normalize_rating(raw.get("rating"))
        if rating is None:
            logger.warning(
                "Review %s has invalid or missing rating: %r",
                external_id,
                raw.get("rating"),
            )
            return None

        text = clean_text(raw.get("text"))
        if not text:
            logger.warning("Review %s has no text content", external_id)
            return None

        published_at = parse_datetime(raw.get("published_at")) or datetime.now(
            timezone.utc
        )
        response_text = clean_text(raw.get("response_text")) or None

        return GoogleReview(
            external_id=str(external_id),
            clinic_place_id=str(clinic_place_id),
            clinic_name=clean_text(raw.get("clinic_name")) or UNKNOWN_CLINIC,
            author_name=clean_text(raw.get("author_name")) or "Anonymous",
            author_url=raw.get("author_url") or None,
            rating=rating,
            text=text,
            published_at=published_at,
            response_text=response_text,
            response_published_at=parse_datetime(raw.get("response_published_at")),
            raw_data={k: v for k, v in raw.items() if k not in _CONSUMED_KEYS},
        )
    except Exception as e:
        logger.error(f"Error parsing Google review: {e}", exc_info=True)
        return None
