"""Text and date helpers shared by the normalizers and the services."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

# Epoch values above this are taken to be milliseconds
_EPOCH_MS_THRESHOLD = 100_000_000_000


def clean_text(text: Optional[str]) -> str:
    """Trim and collapse all runs of whitespace to single spaces."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", str(text)).strip()


def truncate(text: Optional[str], max_length: int) -> str:
    """Cut ``text`` to ``max_length`` characters, ending with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 1].rstrip()}…"


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a datetime, epoch number or date string into an aware UTC datetime.

    Returns None instead of raising when the value cannot be understood.
    Naive results are assumed to be UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = dateutil_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
