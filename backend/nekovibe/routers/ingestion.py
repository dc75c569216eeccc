"""Ingestion router: pull reviews, articles, posts and web insights."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config import ConfigurationError, Settings
from ..deps import _safe_error, get_model, get_settings, get_store
from ..ingestion import (
    INSIGHT_JOBS,
    ArticlesJob,
    GoogleReviewsJob,
    IngestionJob,
    InsightResult,
    LinkedInJob,
)
from ..models.ingestion import IngestionResponse, InsightsRequest, InsightsResponse
from ..openai_provider import LanguageModel
from ..security import rate_limit_jobs
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/ingestion", tags=["ingestion"])


async def _run_job(job: IngestionJob):
    try:
        result = await job.run()
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error(f"{job.name} ingestion", e)},
        )
    logger.info(f"Ingestion {job.name}: added={result.added} skipped={result.skipped}")
    return result.to_dict()


def _configured(factory, *args, **kwargs):
    """Build a job, turning a missing credential into a 400."""
    try:
        return factory(*args, **kwargs)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/google-reviews", response_model=IngestionResponse)
@rate_limit_jobs()
async def ingest_google_reviews(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
):
    """Fetch Google reviews for every configured clinic."""
    return await _run_job(_configured(GoogleReviewsJob, settings, store))


@router.post("/articles", response_model=IngestionResponse)
@rate_limit_jobs()
async def ingest_articles(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """Fetch press coverage from GNews and Tavily."""
    return await _run_job(_configured(ArticlesJob, settings, store, model=model))


@router.post("/linkedin", response_model=IngestionResponse)
@rate_limit_jobs()
async def ingest_linkedin(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
):
    """Fetch LinkedIn posts mentioning Neko Health."""
    return await _run_job(_configured(LinkedInJob, settings, store))


@router.post("/insights", response_model=InsightsResponse)
@rate_limit_jobs()
async def refresh_insights(
    request: Request,
    body: Optional[InsightsRequest] = None,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
):
    """
    Refresh cached web insights for each requested provider and scope.

    Providers without an API key report an error per scope instead of
    failing the whole request.
    """
    body = body or InsightsRequest()
    results: List[InsightResult] = []
    for provider in body.providers:
        try:
            job = INSIGHT_JOBS[provider](settings, store)
        except ConfigurationError as e:
            results.extend(InsightResult(False, scope, provider, str(e)) for scope in body.scopes)
            continue
        for scope in body.scopes:
            results.append(await job.run(scope))

    return {
        "success": any(r.stored for r in results),
        "results": [r.to_dict() for r in results],
    }
