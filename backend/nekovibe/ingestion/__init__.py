"""
Ingestion jobs: one per external source.

Each job fetches candidate items, normalizes them and stores the new ones
through :class:`~nekovibe.storage.FeedbackStore`, reporting added / skipped /
errored counts.
"""

from .articles_job import ArticlesJob
from .base import IngestionJob, dedupe_by_url, normalize_url
from .google_reviews_job import GoogleReviewsJob
from .insights_jobs import (
    INSIGHT_JOBS,
    INSIGHT_SCOPES,
    GNewsInsightsJob,
    InsightResult,
    PerplexityInsightsJob,
    TavilyInsightsJob,
)
from .linkedin_job import LinkedInJob

__all__ = [
    "ArticlesJob",
    "GoogleReviewsJob",
    "LinkedInJob",
    "IngestionJob",
    "dedupe_by_url",
    "normalize_url",
    "INSIGHT_JOBS",
    "INSIGHT_SCOPES",
    "InsightResult",
    "TavilyInsightsJob",
    "GNewsInsightsJob",
    "PerplexityInsightsJob",
]
