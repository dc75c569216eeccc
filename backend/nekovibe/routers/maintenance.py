"""Article maintenance router."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..article_maintenance import ArticleDateRepairer, ArticleUpdater
from ..config import Settings
from ..deps import _safe_error, get_model, get_settings, get_store
from ..models.ingestion import ArticleUpdateResponse, DateRepairResponse
from ..openai_provider import LanguageModel
from ..security import rate_limit_jobs
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/maintenance", tags=["maintenance"])


@router.post("/fix-article-dates", response_model=DateRepairResponse)
@rate_limit_jobs()
async def fix_article_dates(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
):
    """Re-derive published_at for every stored article."""
    try:
        return await ArticleDateRepairer(store, tavily_api_key=settings.tavily_api_key).run()
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("article date repair", e)},
        )


@router.post("/update-articles", response_model=ArticleUpdateResponse)
@rate_limit_jobs()
async def update_articles(
    request: Request,
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """Back-fill LinkedIn post types and article summaries."""
    try:
        return await ArticleUpdater(store, model).run()
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("article update", e)},
        )
