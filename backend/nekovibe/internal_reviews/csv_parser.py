"""
Parser for internal-review CSV exports.

The exports come from different tools, so columns are found by synonym
rather than position: the first header containing a known name wins.
Free-text columns are merged into one comment. Rows that fail validation are
skipped without an error; a header missing one of the four required columns
raises :class:`CsvFormatError`.
"""

import csv
import hashlib
import io
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from dateutil import parser as date_parser

from ..records import InternalReview

logger = logging.getLogger(__name__)

DATE_COLUMNS = ("date", "published_at", "published date", "review date")
RATING_COLUMNS = ("rating", "stars", "star rating", "score")
CLINIC_COLUMNS = ("clinic", "clinic_name", "clinic name", "location")
COMMENT_COLUMNS = ("comment", "text", "review", "feedback", "notes", "description")

# Extra header fragments that mark a column as free text
TEXT_COLUMN_HINTS = ("comment", "text", "note", "description")

_LEADING_INT_RE = re.compile(r"^\s*(-?\d+)")
_NO_YEAR = datetime(1900, 1, 1)


class CsvFormatError(ValueError):
    """The CSV header lacks a required column."""


def find_column(header: Sequence[str], names: Sequence[str]) -> int:
    """Index of the first header matching any of ``names``, or -1."""
    for name in names:
        for idx, column in enumerate(header):
            if column and name in column:
                return idx
    return -1


def parse_review_date(value: str) -> Optional[datetime]:
    """Parse a CSV date, month-first with a day-first retry.

    A value without an explicit year, or with a year up to 2000, is rejected.
    """
    value = (value or "").strip()
    if not value:
        return None
    parsed = None
    for dayfirst in (False, True):
        try:
            parsed = date_parser.parse(value, dayfirst=dayfirst, default=_NO_YEAR)
            break
        except (ValueError, OverflowError):
            continue
    if parsed is None:
        return None
    if parsed.year <= 2000:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_rating(value: str) -> Optional[int]:
    match = _LEADING_INT_RE.match(value or "")
    return int(match.group(1)) if match else None


def review_hash(published_at: datetime, rating: int, clinic: str, comment: str) -> str:
    """Stable duplicate-detection key for an internal review."""
    key = f"{published_at.isoformat()}|{rating}|{clinic}|{comment[:100]}"
    return "ir_" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:20]


def parse_internal_reviews_csv(csv_text: str) -> List[InternalReview]:
    rows = [row for row in csv.reader(io.StringIO(csv_text)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return []

    header = [h.strip().lower() for h in rows[0]]
    date_idx = find_column(header, DATE_COLUMNS)
    rating_idx = find_column(header, RATING_COLUMNS)
    clinic_idx = find_column(header, CLINIC_COLUMNS)
    comment_idx = find_column(header, COMMENT_COLUMNS)

    if -1 in (date_idx, rating_idx, clinic_idx, comment_idx):
        raise CsvFormatError(f"Missing required columns. Found: {', '.join(header)}")

    required = (date_idx, rating_idx, clinic_idx, comment_idx)
    extra_text_columns = [
        idx
        for idx, column in enumerate(header[:comment_idx])
        if idx not in required and any(hint in column for hint in TEXT_COLUMN_HINTS)
    ]

    reviews: List[InternalReview] = []
    for line_no, values in enumerate(rows[1:], start=2):
        values = [v.strip() for v in values]
        if len(values) < max(required) + 1:
            continue

        published_at = parse_review_date(values[date_idx])
        rating = parse_rating(values[rating_idx])
        clinic = values[clinic_idx]
        parts = [v for v in values[comment_idx:] if v]
        parts.extend(values[idx] for idx in extra_text_columns if values[idx])
        comment = " ".join(parts).strip()

        if published_at is None or rating is None or not 1 <= rating <= 5:
            logger.debug(f"Skipping CSV line {line_no}: invalid date or rating")
            continue
        if not clinic or not comment:
            continue

        reviews.append(
            InternalReview(
                review_hash=review_hash(published_at, rating, clinic, comment),
                published_at=published_at,
                rating=rating,
                clinic_name=clinic,
                comment=comment,
            )
        )

    return reviews
