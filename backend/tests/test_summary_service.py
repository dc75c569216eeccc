"""
Tests for summary generation

- single summaries: freshness skip, empty scope, model failure
- batch: every combination, time budget, resuming a partial batch

Usage:
    cd backend && pytest tests/test_summary_service.py -v
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_supabase import FakeSupabase, StubModel
from nekovibe.storage import FeedbackStore
from nekovibe.summary_service import EMPTY_SUMMARY_TEXT, BatchReport, SummaryGenerator, SummaryResult, format_feedback_items


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_item(clinic_id, source_type="google_review", days_ago=1, text="Great scan", rating=5):
    created = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return {
        "clinic_id": clinic_id,
        "source_type": source_type,
        "text": text,
        "metadata": {"external_id": f"{clinic_id}-{text}-{days_ago}", "rating": rating},
        "created_at": created.isoformat(),
    }


class TickClock:
    """Monotonic clock advancing one second per reading."""

    def __init__(self):
        self.value = -1

    def __call__(self):
        self.value += 1
        return self.value


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# Single summaries
# ============================================================================

class TestGenerateSummary:
    def test_success_stores_summary(self):
        client = FakeSupabase({"feedback_items": [make_item("A"), make_item("A", days_ago=100)]})
        model = StubModel("Customers love the scan.")
        generator = SummaryGenerator(FeedbackStore(client), model)

        result = run(generator.generate_summary("A", None, "last_90_days"))

        assert result.status == "success"
        assert result.items_count == 1
        row = client.rows("feedback_summaries")[0]
        assert row["summary_text"] == "Customers love the scan."
        assert row["clinic_id"] == "A"
        assert row["source_type"] is None
        assert model.calls[0]["temperature"] == 0.2

    def test_recent_summary_is_skipped(self):
        now = datetime.now(timezone.utc).isoformat()
        client = FakeSupabase({
            "feedback_items": [make_item("A")],
            "feedback_summaries": [{"clinic_id": None, "source_type": None, "scope": "all_time",
                                    "summary_text": "cached", "last_refreshed_at": now}],
        })
        model = StubModel()
        result = run(SummaryGenerator(FeedbackStore(client), model).generate_summary())

        assert result.status == "skipped"
        assert result.summary == "cached"
        assert model.calls == []

    def test_force_refresh_regenerates(self):
        now = datetime.now(timezone.utc).isoformat()
        client = FakeSupabase({
            "feedback_items": [make_item("A")],
            "feedback_summaries": [{"clinic_id": None, "source_type": None, "scope": "all_time",
                                    "summary_text": "cached", "last_refreshed_at": now}],
        })
        result = run(SummaryGenerator(FeedbackStore(client), StubModel("fresh")).generate_summary(force_refresh=True))
        assert result.status == "success"
        assert [r["summary_text"] for r in client.rows("feedback_summaries")] == ["fresh"]

    def test_stale_summary_is_regenerated(self):
        old = (datetime.now(timezone.utc) - timedelta(hours=30)).isoformat()
        client = FakeSupabase({
            "feedback_items": [make_item("A")],
            "feedback_summaries": [{"clinic_id": None, "source_type": None, "scope": "all_time",
                                    "summary_text": "old", "last_refreshed_at": old}],
        })
        result = run(SummaryGenerator(FeedbackStore(client), StubModel("new")).generate_summary())
        assert result.status == "success"

    def test_empty_scope_stores_placeholder(self):
        client = FakeSupabase()
        result = run(SummaryGenerator(FeedbackStore(client), StubModel()).generate_summary("Nowhere"))
        assert result.status == "empty"
        assert result.items_count == 0
        assert client.rows("feedback_summaries")[0]["summary_text"] == EMPTY_SUMMARY_TEXT

    def test_missing_model_is_an_error(self):
        client = FakeSupabase({"feedback_items": [make_item("A")]})
        result = run(SummaryGenerator(FeedbackStore(client), None).generate_summary("A"))
        assert result.status == "error"
        assert result.error == "Failed to generate summary from OpenAI"
        assert client.rows("feedback_summaries") == []

    def test_unknown_scope(self):
        result = run(SummaryGenerator(FeedbackStore(FakeSupabase()), StubModel()).generate_summary(scope="yesterday"))
        assert result.status == "error"

    def test_result_dict_shape(self):
        skipped = SummaryResult("A", None, "all_time", "skipped", reason="recent").to_dict()
        assert "items_count" not in skipped
        assert skipped["reason"] == "recent"
        assert SummaryResult(None, None, "all_time", "empty").to_dict()["items_count"] == 0

    def test_format_feedback_items(self):
        text = format_feedback_items([make_item("A", rating=4)], "A")
        assert text.startswith("[1] Rating: 4/5")
        assert "Clinic: A" in text
        assert "Content: Great scan" in text


# ============================================================================
# Batch
# ============================================================================

class TestRunBatch:
    def _client(self):
        return FakeSupabase({"feedback_items": [
            make_item("A"),
            make_item("B"),
            make_item("B", source_type="press_article", text="Press"),
        ]})

    def test_full_batch_covers_every_combination(self):
        generator = SummaryGenerator(FeedbackStore(self._client()), StubModel("s"))
        report = run(generator.run_batch())

        assert report.partial is False
        # global 4 + A (all, google) 8 + B (all, google, press) 12
        assert len(report.results) == 24
        data = report.to_dict()
        assert data["message"] == "Generated all summaries"
        assert data["processed_clinics"] == 2
        assert data["total_clinics"] == 2

    def test_clinic_only_and_skip_global(self):
        generator = SummaryGenerator(FeedbackStore(self._client()), StubModel("s"))
        report = run(generator.run_batch(skip_global=True, clinic_only="A"))
        assert {r.clinic_id for r in report.results} == {"A"}
        assert len(report.results) == 8

    def test_budget_exhaustion_reports_remaining(self):
        generator = SummaryGenerator(
            FeedbackStore(self._client()), StubModel("s"), budget_seconds=4.5, clock=TickClock()
        )
        report = run(generator.run_batch())

        assert report.partial is True
        assert len(report.results) == 4
        assert report.remaining_clinics == ["A", "B"]
        data = report.to_dict()
        assert data["message"] == "Partial completion - approaching timeout"
        assert data["processed"] == 0
        assert data["total"] == 2

    def test_resume_skips_fresh_summaries(self):
        client = self._client()
        store = FeedbackStore(client)
        partial = run(SummaryGenerator(store, StubModel("s"), budget_seconds=4.5, clock=TickClock()).run_batch())
        assert partial.partial

        model = StubModel("s")
        report = run(SummaryGenerator(store, model).run_batch())

        statuses = [r.status for r in report.results if r.clinic_id is None]
        assert statuses == ["skipped"] * 4
        assert report.partial is False
        assert len(model.calls) == 20

    def test_partial_dict_includes_current_clinic(self):
        report = BatchReport(processed=1, total=3, remaining_clinics=["B", "C"], current_clinic="B", partial=True)
        assert report.to_dict()["current_clinic"] == "B"
