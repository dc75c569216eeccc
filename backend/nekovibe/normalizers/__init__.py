"""Record normalizers: loosely-typed payloads in, validated records (or None) out."""

from .article_parser import parse_article
from .review_parser import parse_google_review
from .text_utils import clean_text, parse_datetime, truncate

__all__ = [
    "parse_article",
    "parse_google_review",
    "clean_text",
    "parse_datetime",
    "truncate",
]
