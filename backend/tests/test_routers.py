"""
API tests for the Nekovibe routers

Runs the FastAPI app with TestClient; the store, model and settings are
swapped through app.dependency_overrides.

Usage:
    cd backend && pytest tests/test_routers.py -v
"""

import os
import sys
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_supabase import FakeSupabase, StubModel
from nekovibe import deps
from nekovibe.config import Settings
from nekovibe.main import app
from nekovibe.storage import FeedbackStore


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_feedback(text="The staff were friendly", clinic="Neko Health Marylebone"):
    return {
        "clinic_id": clinic,
        "source_type": "google_review",
        "text": text,
        "metadata": {"rating": 5},
        "created_at": "2025-05-01T00:00:00+00:00",
    }


CSV_TEXT = (
    "Date,Rating,Clinic,Comment\n"
    "2025-03-01,5,Neko Health Marylebone,Great scan\n"
    "2025-03-02,2,Neko Health Manchester,Long wait\n"
)


@pytest.fixture
def fake_client():
    return FakeSupabase({"feedback_items": [make_feedback()]})


@pytest.fixture
def api(fake_client):
    settings = Settings()
    app.dependency_overrides[deps.get_store] = lambda: FeedbackStore(fake_client)
    app.dependency_overrides[deps.get_model] = lambda: StubModel("Stub reply")
    app.dependency_overrides[deps.get_settings] = lambda: settings
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def use_settings(**kwargs):
    app.dependency_overrides[deps.get_settings] = lambda: Settings(**kwargs)


# ============================================================================
# Health
# ============================================================================

class TestHealth:
    def test_root(self, api):
        response = api.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "message": "Nekovibe API is running"}

    def test_health_reports_degraded_mode(self, api):
        data = api.get("/api/v1/health").json()
        assert data["status"] == "healthy"
        assert data["mode"] == "degraded"
        assert "database" in data["degraded"]
        assert data["services"]["ai"]["available"] is False

    def test_security_headers(self, api):
        response = api.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers


# ============================================================================
# Chat
# ============================================================================

class TestChatEndpoint:
    def test_answers_question(self, api):
        response = api.post("/api/v1/chat", json={"prompt": "Is the staff friendly?"})
        assert response.status_code == 200
        data = response.json()
        assert data["answer"] == "Stub reply"
        assert data["search_results_used"] == 1
        assert data["used_fallback"] is False

    def test_blank_prompt_is_400(self, api):
        response = api.post("/api/v1/chat", json={"prompt": "   "})
        assert response.status_code == 400
        assert response.json()["error"] == "prompt is required"

    def test_unknown_source_is_400(self, api):
        response = api.post("/api/v1/chat", json={"prompt": "Q", "sources": ["tv"]})
        assert response.status_code == 400
        assert "Unknown source categories" in response.json()["error"]

    def test_missing_store_is_503(self, api):
        del app.dependency_overrides[deps.get_store]
        with patch.object(deps, "_store", None):
            response = api.post("/api/v1/chat", json={"prompt": "Q"})
        assert response.status_code == 503
        assert response.json() == {"error": "Supabase credentials not configured"}


# ============================================================================
# Internal reviews
# ============================================================================

class TestInternalReviewsEndpoints:
    def test_upload_without_file(self, api):
        response = api.post("/api/v1/internal-reviews/upload")
        assert response.status_code == 400
        assert response.json()["error"] == "No file provided"

    def test_upload_csv(self, api, fake_client):
        response = api.post(
            "/api/v1/internal-reviews/upload",
            files={"file": ("reviews.csv", CSV_TEXT.encode("utf-8-sig"), "text/csv")},
        )
        assert response.status_code == 200
        data = response.json()
        assert (data["added"], data["skipped"], data["total"]) == (2, 0, 2)
        assert len(fake_client.rows("internal_reviews")) == 2

    def test_upload_bad_header(self, api):
        response = api.post(
            "/api/v1/internal-reviews/upload",
            files={"file": ("reviews.csv", b"a,b\n1,2\n", "text/csv")},
        )
        assert response.status_code == 400
        assert "Missing required columns" in response.json()["error"]

    def test_upload_non_utf8(self, api):
        response = api.post(
            "/api/v1/internal-reviews/upload",
            files={"file": ("reviews.csv", b"\xff\xfe\x00bad", "text/csv")},
        )
        assert response.status_code == 400

    def test_chat(self, api):
        api.post(
            "/api/v1/internal-reviews/upload",
            files={"file": ("reviews.csv", CSV_TEXT.encode(), "text/csv")},
        )
        response = api.post(
            "/api/v1/internal-reviews/chat",
            json={"prompt": "How many complaints?", "analyze_all": True, "filters": {"clinic": "Neko Health Manchester"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["reviews_used"] == 1
        assert data["analyze_all"] is True


# ============================================================================
# Summaries
# ============================================================================

class TestSummariesEndpoint:
    def test_single_summary(self, api, fake_client):
        response = api.post(
            "/api/v1/summaries/generate",
            json={"clinic_id": "Neko Health Marylebone", "scope": "all_time"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert fake_client.rows("feedback_summaries")[0]["summary_text"] == "Stub reply"

    def test_batch_without_body(self, api):
        response = api.post("/api/v1/summaries/generate")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Generated all summaries"
        assert data["total_clinics"] == 1

    def test_model_failure_is_500(self, api):
        app.dependency_overrides[deps.get_model] = lambda: None
        response = api.post("/api/v1/summaries/generate", json={"scope": "all_time"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to generate summary from OpenAI"

    def test_invalid_scope_is_400(self, api):
        response = api.post("/api/v1/summaries/generate", json={"scope": "yesterday"})
        assert response.status_code == 400


# ============================================================================
# Ingestion, maintenance and search
# ============================================================================

class TestJobEndpoints:
    def test_google_reviews_without_key(self, api):
        response = api.post("/api/v1/ingestion/google-reviews")
        assert response.status_code == 400
        assert response.json()["error"] == "GOOGLE_PLACES_API_KEY not configured"

    def test_insights_report_unconfigured_providers(self, api):
        response = api.post("/api/v1/ingestion/insights", json={"providers": ["perplexity"], "scopes": ["comprehensive"]})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["results"][0]["error"] == "PERPLEXITY_API_KEY not configured"

    def test_update_articles(self, api, fake_client):
        fake_client.tables["articles"] = [{
            "id": 1, "source": "linkedin", "url": "https://www.linkedin.com/posts/ada",
            "title": "Post", "content": "Had a scan", "metadata": {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }]
        response = api.post("/api/v1/maintenance/update-articles")
        assert response.status_code == 200
        assert response.json()["updated"] == 1

    def test_tavily_placeholder_without_key(self, api):
        response = api.post("/api/v1/search/tavily", json={"prompt": "news"})
        assert response.status_code == 200
        assert response.json()["unavailable"] is True

    def test_perplexity_failure_is_502(self, api):
        use_settings(perplexity_api_key="p")
        with patch("nekovibe.source_fetchers.perplexity_fetcher.perplexity_chat", AsyncMock(return_value=None)):
            response = api.post("/api/v1/search/perplexity", json={"prompt": "news"})
        assert response.status_code == 502
        assert response.json() == {"error": "Failed to query Perplexity"}
