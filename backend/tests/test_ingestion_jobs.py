"""
Tests for the ingestion jobs

External APIs are patched out; the store is FeedbackStore over FakeSupabase.
- Google reviews: new vs duplicate reviews, unresolvable clinics
- Articles: URL dedupe across terms and providers, existing articles skipped
- LinkedIn: non-LinkedIn hits dropped, post type tagged
- Missing credentials fail at construction

Usage:
    cd backend && pytest tests/test_ingestion_jobs.py -v
"""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, patch

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_supabase import FakeSupabase, StubModel
from nekovibe.config import ConfigurationError, Settings
from nekovibe.ingestion import ArticlesJob, GoogleReviewsJob, LinkedInJob, dedupe_by_url, normalize_url
from nekovibe.ingestion.articles_job import categorize_source
from nekovibe.ingestion.enrichment import categorize_linkedin_post
from nekovibe.ingestion.google_reviews_job import review_external_id
from nekovibe.source_fetchers.gnews_fetcher import GNewsArticle
from nekovibe.source_fetchers.google_places_fetcher import PlaceInfo
from nekovibe.storage import FeedbackStore


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_places_review(author="Ada", time=1_700_000_000, rating=5, text="Lovely clinic and staff"):
    return {"author_name": author, "time": time, "rating": rating, "text": text, "language": "en"}


class FakePlaces:
    """GooglePlacesClient double keyed by identifier."""

    def __init__(self, places, reviews):
        self.places = places
        self.reviews = reviews

    async def resolve(self, identifier):
        return self.places.get(identifier)

    async def fetch_reviews(self, place_id):
        return self.reviews.get(place_id, [])


def make_gnews(url, title="Neko Health news"):
    return GNewsArticle(
        title=title,
        url=url,
        description="Neko Health body scan clinic",
        content="Neko Health opened a clinic. " * 5,
        source_name="Example News",
        source_url="https://example.com",
        published_at="2025-04-01T00:00:00Z",
    )


def make_tavily_hit(url, content="Neko Health post content", author=None):
    return {"url": url, "title": "Post", "content": content, "author": author, "published_date": "2025-04-02"}


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# Helpers
# ============================================================================

class TestUrlHelpers:
    def test_normalize_url_strips_query_and_case(self):
        assert normalize_url("HTTPS://Example.com/A?utm=1#x") == "https://example.com/a"

    def test_dedupe_keeps_first(self):
        items = [{"u": "https://a.com/x?1"}, {"u": "https://a.com/x"}, {"u": "https://b.com"}]
        assert dedupe_by_url(items, lambda i: i["u"]) == [items[0], items[2]]

    def test_categorize_source(self):
        assert categorize_source("https://x.com/blog/1", "") == "blog"
        assert categorize_source("https://x.com/1", "Daily News") == "press"
        assert categorize_source("https://x.com/1", "Site") == "article"

    def test_categorize_linkedin_post(self):
        assert categorize_linkedin_post("https://linkedin.com/company/neko-health/posts", "", "") == "company_post"
        assert categorize_linkedin_post("https://linkedin.com/posts/1", "Neko Health", "") == "company_post"
        assert categorize_linkedin_post("https://linkedin.com/posts/1", "Ada", "Our team at Neko Health") == "company_post"
        assert categorize_linkedin_post("https://linkedin.com/posts/1", "Ada", "Had a scan") == "organic_post"

    def test_review_external_id_is_stable(self):
        review = make_places_review()
        assert review_external_id(review, "p1") == review_external_id(dict(review), "p1")
        assert " " not in review_external_id(review, "p1")


# ============================================================================
# Google reviews
# ============================================================================

class TestGoogleReviewsJob:
    def _settings(self, ids="place-1"):
        return Settings(google_places_api_key="key", google_places_ids=ids)

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            GoogleReviewsJob(Settings(), FeedbackStore(FakeSupabase()))

    def test_stores_new_reviews_and_skips_duplicates(self):
        client = FakeSupabase()
        places = FakePlaces(
            {"place-1": PlaceInfo("place-1", "Neko Health Marylebone")},
            {"place-1": [make_places_review("Ada"), make_places_review("Bob")]},
        )
        job = GoogleReviewsJob(self._settings(), FeedbackStore(client), places=places)

        first = run(job.run())
        second = run(job.run())

        assert (first.added, first.skipped, first.total_found) == (2, 0, 2)
        assert (second.added, second.skipped) == (0, 2)
        assert len(client.rows("google_reviews")) == 2
        assert client.rows("google_reviews")[0]["clinic_name"] == "Neko Health Marylebone"

    def test_unparseable_review_recorded_as_error(self):
        places = FakePlaces(
            {"place-1": PlaceInfo("place-1", "Clinic")},
            {"place-1": [make_places_review(rating=None)]},
        )
        result = run(GoogleReviewsJob(self._settings(), FeedbackStore(FakeSupabase()), places=places).run())
        assert result.added == 0
        assert result.errors[0].error == "Failed to parse review"

    def test_unresolvable_clinic_does_not_stop_others(self):
        places = FakePlaces(
            {"ChIJplace2": PlaceInfo("ChIJplace2", "Clinic 2")},
            {"ChIJplace2": [make_places_review()]},
        )
        job = GoogleReviewsJob(self._settings("bad-url,ChIJplace2"), FeedbackStore(FakeSupabase()), places=places)
        result = run(job.run())
        assert result.added == 1
        assert result.errors[0].item == "bad-url"

    def test_falls_back_to_stored_clinics(self):
        client = FakeSupabase({"google_reviews": [{"clinic_place_id": "place-9"}]})
        places = FakePlaces({"place-9": PlaceInfo("place-9", "Clinic 9")}, {"place-9": []})
        job = GoogleReviewsJob(self._settings(ids=None), FeedbackStore(client), places=places)
        result = run(job.run())
        assert result.errors == []
        assert result.total_found == 0


# ============================================================================
# Articles
# ============================================================================

class TestArticlesJob:
    def test_requires_a_search_key(self):
        with pytest.raises(ConfigurationError):
            ArticlesJob(Settings(), FeedbackStore(FakeSupabase()))

    def test_dedupes_across_terms_and_skips_existing(self):
        client = FakeSupabase({"articles": [{"external_id": "https://c.com/old", "url": "https://c.com/old"}]})
        settings = Settings(gnews_api_key="g", tavily_api_key="t")
        gnews = AsyncMock(return_value=[make_gnews("https://a.com/news/1"), make_gnews("https://c.com/old")])
        tavily = AsyncMock(return_value={"results": [
            make_tavily_hit("https://a.com/news/1?utm=x"),
            make_tavily_hit("https://b.com/blog/2", content="x" * 300),
            make_tavily_hit("https://www.linkedin.com/posts/3"),
        ]})

        with patch("nekovibe.ingestion.articles_job.search_news", gnews), \
                patch("nekovibe.ingestion.articles_job.tavily_search", tavily):
            job = ArticlesJob(settings, FeedbackStore(client), model=StubModel("A short summary."), search_terms=["Neko Health", "Neko"])
            result = run(job.run())

        assert result.total_found == 3
        assert result.added == 2
        assert result.skipped == 1
        stored = {row["url"]: row for row in client.rows("articles")}
        assert stored["https://b.com/blog/2"]["source"] == "blog"
        assert stored["https://b.com/blog/2"]["metadata"]["summary"] == "A short summary."
        assert stored["https://a.com/news/1"]["metadata"]["provider"] == "gnews"

    def test_gnews_only(self):
        settings = Settings(gnews_api_key="g")
        gnews = AsyncMock(return_value=[make_gnews("https://a.com/1")])
        tavily = AsyncMock()
        with patch("nekovibe.ingestion.articles_job.search_news", gnews), \
                patch("nekovibe.ingestion.articles_job.tavily_search", tavily):
            result = run(ArticlesJob(settings, FeedbackStore(FakeSupabase()), search_terms=["Neko"]).run())
        assert result.added == 1
        tavily.assert_not_called()


# ============================================================================
# LinkedIn
# ============================================================================

class TestLinkedInJob:
    def test_requires_tavily_key(self):
        with pytest.raises(ConfigurationError):
            LinkedInJob(Settings(gnews_api_key="g"), FeedbackStore(FakeSupabase()))

    def test_stores_linkedin_posts_only(self):
        client = FakeSupabase()
        tavily = AsyncMock(return_value={"results": [
            make_tavily_hit("https://www.linkedin.com/company/neko-health/posts/1"),
            make_tavily_hit("https://www.linkedin.com/posts/ada-1", content="My scan experience"),
            make_tavily_hit("https://example.com/not-linkedin"),
        ]})
        with patch("nekovibe.ingestion.linkedin_job.tavily_search", tavily):
            result = run(LinkedInJob(Settings(tavily_api_key="t"), FeedbackStore(client), search_terms=["Neko"]).run())

        assert result.added == 2
        types = {row["url"]: row["metadata"]["post_type"] for row in client.rows("articles")}
        assert types["https://www.linkedin.com/company/neko-health/posts/1"] == "company_post"
        assert types["https://www.linkedin.com/posts/ada-1"] == "organic_post"
        assert all(row["source"] == "linkedin" for row in client.rows("articles"))
        assert all(item["source_type"] == "social_post" for item in client.rows("feedback_items"))

    def test_failed_search_is_recorded(self):
        with patch("nekovibe.ingestion.linkedin_job.tavily_search", AsyncMock(return_value=None)):
            result = run(LinkedInJob(Settings(tavily_api_key="t"), FeedbackStore(FakeSupabase()), search_terms=["Neko"]).run())
        assert result.added == 0
        assert result.errors[0].item == "Neko"
