"""
Unit Tests for the record normalizers

Tests:
- clean_text / truncate / parse_datetime helpers
- parse_google_review validation and rating policy
- parse_article source detection, title fallback and HTML extraction

Usage:
    cd backend && pytest tests/test_normalizers.py -v
"""

import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nekovibe.normalizers import clean_text, parse_article, parse_datetime, parse_google_review, truncate
from nekovibe.normalizers.article_parser import determine_source, extract_clean_text, title_from_url
from nekovibe.records import UNKNOWN_CLINIC


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_raw_review(**overrides) -> Dict[str, Any]:
    raw = {
        "external_id": "rev-1",
        "clinic_place_id": "place-1",
        "clinic_name": "Neko Health Marylebone",
        "author_name": "Ada",
        "rating": 5,
        "text": "  Great   scan,\n friendly staff ",
        "published_at": 1_700_000_000,
    }
    raw.update(overrides)
    return raw


def make_raw_article(**overrides) -> Dict[str, Any]:
    raw = {
        "external_id": "https://news.example.com/neko-health-opens-clinic",
        "url": "https://news.example.com/neko-health-opens-clinic",
        "title": "Neko Health opens a clinic",
        "content": "<html><body><nav>menu</nav><article>Neko Health opened a new clinic "
        "in Manchester this week with body scans.</article></body></html>",
        "published_at": "2025-03-01T10:00:00Z",
    }
    raw.update(overrides)
    return raw


# ============================================================================
# Text helpers
# ============================================================================

class TestTextHelpers:
    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  a \n\t b  ") == "a b"
        assert clean_text(None) == ""

    def test_truncate_adds_ellipsis(self):
        assert truncate("short", 10) == "short"
        result = truncate("abcdefghij", 5)
        assert len(result) == 5
        assert result.endswith("…")

    def test_parse_datetime_epoch_seconds_and_ms(self):
        seconds = parse_datetime(1_700_000_000)
        millis = parse_datetime(1_700_000_000_000)
        assert seconds == millis
        assert seconds.tzinfo is not None

    def test_parse_datetime_naive_string_is_utc(self):
        parsed = parse_datetime("2025-01-02 03:04:05")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_parse_datetime_garbage_returns_none(self):
        assert parse_datetime("not a date at all") is None
        assert parse_datetime("") is None
        assert parse_datetime(True) is None


# ============================================================================
# Google reviews
# ============================================================================

class TestParseGoogleReview:
    def test_valid_review(self):
        review = parse_google_review(make_raw_review(extra_field="kept"))
        assert review is not None
        assert review.text == "Great scan, friendly staff"
        assert review.rating == 5
        assert review.published_at.year == 2023
        assert review.raw_data == {"extra_field": "kept"}

    @pytest.mark.parametrize("field", ["external_id", "clinic_place_id"])
    def test_missing_identity_rejected(self, field):
        assert parse_google_review(make_raw_review(**{field: None})) is None

    def test_missing_rating_rejected(self):
        assert parse_google_review(make_raw_review(rating=None)) is None
        assert parse_google_review(make_raw_review(rating="five")) is None

    def test_rating_clamped_and_rounded(self):
        assert parse_google_review(make_raw_review(rating=7)).rating == 5
        assert parse_google_review(make_raw_review(rating=0)).rating == 1
        assert parse_google_review(make_raw_review(rating="3.6")).rating == 4

    def test_blank_text_rejected(self):
        assert parse_google_review(make_raw_review(text="   ")) is None

    def test_defaults_for_optional_fields(self):
        review = parse_google_review(make_raw_review(clinic_name=None, author_name=""))
        assert review.clinic_name == UNKNOWN_CLINIC
        assert review.author_name == "Anonymous"

    def test_missing_date_defaults_to_now(self):
        review = parse_google_review(make_raw_review(published_at=None))
        assert (datetime.now(timezone.utc) - review.published_at).total_seconds() < 60


# ============================================================================
# Articles
# ============================================================================

class TestParseArticle:
    def test_valid_article_extracts_main_content(self):
        article = parse_article(make_raw_article())
        assert article is not None
        assert "Manchester" in article.content
        assert "menu" not in article.content
        assert article.source == "press"

    def test_missing_url_rejected(self):
        assert parse_article(make_raw_article(url=None)) is None

    def test_title_falls_back_to_url(self):
        article = parse_article(make_raw_article(title="", url="https://x.com/blog/neko-health_review.html"))
        assert article.title == "neko health review"

    def test_explicit_source_wins(self):
        assert determine_source("LinkedIn ", "https://news.example.com") == "linkedin"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/blog/post", "blog"),
            ("https://example.com/press/release", "press"),
            ("https://medium.com/@x/post", "blog"),
            ("https://example.com/story", "article"),
            (None, "unknown"),
        ],
    )
    def test_determine_source_from_url(self, url, expected):
        assert determine_source(None, url) == expected

    def test_unknown_keys_kept_in_metadata(self):
        article = parse_article(make_raw_article(provider="gnews"))
        assert article.metadata == {"provider": "gnews"}

    def test_extract_clean_text_plain_text(self):
        assert extract_clean_text("just text") == "just text"
        assert extract_clean_text(None) == ""

    def test_title_from_url_without_path(self):
        assert title_from_url("https://example.com") == ""
