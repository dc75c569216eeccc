"""
Tests for internal review uploads and chat

- CSV header synonyms, row validation, month-first dates
- upload dedupe by review hash and summary regeneration
- chat context: latest batch plus recent reviews, or everything

Usage:
    cd backend && pytest tests/test_internal_reviews.py -v
"""

import asyncio
import os
import sys
from datetime import datetime, timezone

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_supabase import FakeSupabase, StubModel
from nekovibe.internal_reviews import (
    CsvFormatError,
    InternalReviewService,
    InternalReviewsChat,
    parse_internal_reviews_csv,
    review_hash,
)
from nekovibe.internal_reviews.chat import ANALYZE_ALL_NOTE, NO_MODEL_ANSWER, RECENT_NOTE, dedupe_reviews
from nekovibe.internal_reviews.csv_parser import find_column, parse_rating, parse_review_date
from nekovibe.storage import FeedbackStore


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

CSV_HEADER = "Review Date,Stars,Clinic Name,Comment"


def make_csv(*lines, header=CSV_HEADER):
    return "\n".join((header,) + lines) + "\n"


def make_row(published_at, batch="b1", clinic="Neko Health Marylebone", comment="Nice", uploaded_at=None):
    row = {
        "review_hash": f"ir_{published_at}_{clinic}_{comment}",
        "published_at": published_at,
        "rating": 5,
        "clinic_name": clinic,
        "comment": comment,
        "upload_batch_id": batch,
    }
    if uploaded_at:
        row["uploaded_at"] = uploaded_at
    return row


FIXED_NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# CSV parsing
# ============================================================================

class TestCsvParsing:
    def test_header_synonyms(self):
        header = ["review date", "stars", "clinic name", "comment"]
        assert find_column(header, ("date", "published_at")) == 0
        assert find_column(header, ("rating", "stars")) == 1
        assert find_column(header, ("location",)) == -1

    def test_short_headers_do_not_match_synonyms(self):
        assert find_column(["a", "b"], ("date", "published_at")) == -1
        assert find_column(["rat"], ("rating",)) == -1
        with pytest.raises(CsvFormatError):
            parse_internal_reviews_csv("a,b\n1,2\n")

    def test_parses_valid_rows(self):
        reviews = parse_internal_reviews_csv(make_csv(
            "25/03/2025,5,Neko Health Marylebone,Great scan",
            '03/04/2025,4 stars,Neko Health Manchester,"Quick, friendly"',
        ))
        assert len(reviews) == 2
        assert reviews[0].published_at == datetime(2025, 3, 25, tzinfo=timezone.utc)
        assert reviews[1].published_at == datetime(2025, 3, 4, tzinfo=timezone.utc)
        assert reviews[1].rating == 4
        assert reviews[1].comment == "Quick, friendly"
        assert reviews[0].review_hash.startswith("ir_")

    def test_trailing_cells_join_the_comment(self):
        reviews = parse_internal_reviews_csv(make_csv("2025-03-01,5,Clinic,Great scan,and staff"))
        assert reviews[0].comment == "Great scan and staff"

    def test_invalid_rows_are_skipped(self):
        reviews = parse_internal_reviews_csv(make_csv(
            "2025-03-01,6,Clinic,Too many stars",
            "1999-03-01,5,Clinic,Too old",
            "not a date,5,Clinic,Bad date",
            "2025-03-01,5,,No clinic",
            "2025-03-01,5,Clinic,",
            "2025-03-01,5",
            "2025-03-01,3,Clinic,Fine",
        ))
        assert [r.comment for r in reviews] == ["Fine"]

    def test_missing_column_raises(self):
        with pytest.raises(CsvFormatError) as exc:
            parse_internal_reviews_csv("date,rating,clinic\n2025-01-01,5,A\n")
        assert "Missing required columns" in str(exc.value)

    def test_header_only_is_empty(self):
        assert parse_internal_reviews_csv(CSV_HEADER + "\n") == []

    def test_date_and_rating_helpers(self):
        assert parse_review_date("") is None
        assert parse_review_date("2000-12-31") is None
        assert parse_review_date("01/02/2025") == datetime(2025, 1, 2, tzinfo=timezone.utc)
        assert parse_review_date("25/03/2025") == datetime(2025, 3, 25, tzinfo=timezone.utc)
        assert parse_rating(" 4/5") == 4
        assert parse_rating("n/a") is None

    def test_dates_without_a_year_are_rejected(self):
        assert parse_review_date("1") is None
        assert parse_review_date("March 3") is None
        assert parse_internal_reviews_csv(make_csv("2,5,Clinic,Bare number")) == []

    def test_review_hash_is_stable(self):
        when = datetime(2025, 3, 1, tzinfo=timezone.utc)
        first = review_hash(when, 5, "A", "text")
        assert first == review_hash(when, 5, "A", "text")
        assert first != review_hash(when, 4, "A", "text")
        assert len(first) == 23


# ============================================================================
# Uploads
# ============================================================================

class TestUpload:
    CSV = make_csv(
        "2025-03-01,5,Neko Health Marylebone,Great scan",
        "2025-03-02,2,Neko Health Manchester,Long wait",
    )

    def test_upload_inserts_and_summarizes(self):
        client = FakeSupabase()
        model = StubModel("Mostly positive.")
        result = run(InternalReviewService(FeedbackStore(client), model).upload(self.CSV))

        assert result["success"] is True
        assert (result["added"], result["skipped"], result["total"]) == (2, 0, 2)
        assert result["batch_id"].startswith("batch_")
        assert result["errors"] == []
        assert {r["upload_batch_id"] for r in client.rows("internal_reviews")} == {result["batch_id"]}
        summaries = run(FeedbackStore(client).list_internal_summaries())
        assert sorted(s["scope"] for s in summaries) == ["all_time", "latest_upload"]
        assert len(model.calls) == 2

    def test_reupload_skips_duplicates(self):
        client = FakeSupabase()
        model = StubModel("s")
        service = InternalReviewService(FeedbackStore(client), model)
        run(service.upload(self.CSV))

        second = run(service.upload(self.CSV))

        assert (second["added"], second["skipped"]) == (0, 2)
        assert len(client.rows("internal_reviews")) == 2
        assert len(model.calls) == 2

    def test_upload_without_model_skips_summaries(self):
        client = FakeSupabase()
        result = run(InternalReviewService(FeedbackStore(client), None).upload(self.CSV))
        assert result["added"] == 2
        assert run(FeedbackStore(client).list_internal_summaries()) == []

    def test_insert_failure_is_reported(self):
        client = FakeSupabase()
        client.failing_tables.add("internal_reviews")
        result = run(InternalReviewService(FeedbackStore(client), StubModel()).upload(self.CSV))
        assert result["added"] == 0
        assert len(result["errors"]) == 2

    def test_bad_header_raises(self):
        with pytest.raises(CsvFormatError):
            run(InternalReviewService(FeedbackStore(FakeSupabase()), None).upload("a,b\n1,2\n"))


# ============================================================================
# Chat
# ============================================================================

class TestInternalReviewsChat:
    def _client(self):
        return FakeSupabase({"internal_reviews": [
            make_row("2024-12-01T00:00:00+00:00", batch="latest", comment="From the latest upload",
                     uploaded_at="2025-05-31T00:00:00+00:00"),
            make_row("2025-05-28T00:00:00+00:00", batch="older", comment="Recent review",
                     uploaded_at="2025-05-29T00:00:00+00:00"),
            make_row("2025-01-01T00:00:00+00:00", batch="older", comment="Old review",
                     uploaded_at="2025-01-02T00:00:00+00:00"),
        ]})

    def test_default_context_is_latest_batch_and_recent(self):
        chat = InternalReviewsChat(FeedbackStore(self._client()), None, now=lambda: FIXED_NOW)
        rows = run(chat.collect_reviews(analyze_all=False))
        assert sorted(r["comment"] for r in rows) == ["From the latest upload", "Recent review"]

    def test_analyze_all_reads_everything(self):
        chat = InternalReviewsChat(FeedbackStore(self._client()), None, now=lambda: FIXED_NOW)
        assert len(run(chat.collect_reviews(analyze_all=True))) == 3

    def test_dedupe_reviews(self):
        row = make_row("2025-05-28T00:00:00+00:00")
        assert dedupe_reviews([row, dict(row), make_row("2025-05-29T00:00:00+00:00")]) == [
            row, make_row("2025-05-29T00:00:00+00:00"),
        ]

    def test_answer_without_model(self):
        chat = InternalReviewsChat(FeedbackStore(self._client()), None, now=lambda: FIXED_NOW)
        result = run(chat.answer("How are we doing?"))
        assert result == {
            "answer": NO_MODEL_ANSWER,
            "reviews_used": 2,
            "summaries_used": 0,
            "analyze_all": False,
        }

    def test_answer_prompt_notes(self):
        model = StubModel("Answer")
        chat = InternalReviewsChat(FeedbackStore(self._client()), model, now=lambda: FIXED_NOW)

        recent = run(chat.answer("How are we doing?"))
        everything = run(chat.answer("How are we doing?", analyze_all=True))

        assert recent["answer"] == "Answer"
        assert RECENT_NOTE in model.calls[0]["user"]
        assert ANALYZE_ALL_NOTE in model.calls[1]["user"]
        assert everything["reviews_used"] == 3
        assert model.calls[0]["temperature"] == 0.2

    def test_clinic_filter(self):
        client = self._client()
        client.tables["internal_reviews"].append(
            make_row("2025-05-30T00:00:00+00:00", batch="older", clinic="Neko Health Manchester",
                     comment="Manchester visit", uploaded_at="2025-05-30T00:00:00+00:00")
        )
        chat = InternalReviewsChat(FeedbackStore(client), None, now=lambda: FIXED_NOW)
        rows = run(chat.collect_reviews(True, clinic_names=["Neko Health Manchester"]))
        assert [r["comment"] for r in rows] == ["Manchester visit"]
