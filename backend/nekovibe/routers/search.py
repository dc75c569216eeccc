"""Live web search router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..config import Settings
from ..deps import get_settings
from ..models.search import WebSearchRequest, WebSearchResponse
from ..security import rate_limit_chat
from ..web_search import WebSearchError, perplexity_query, tavily_query

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/search", tags=["search"])


@router.post("/tavily", response_model=WebSearchResponse)
@rate_limit_chat()
async def search_tavily(
    request: Request,
    body: WebSearchRequest,
    settings: Settings = Depends(get_settings),
):
    return await tavily_query(settings.tavily_api_key, body.prompt)


@router.post("/perplexity", response_model=WebSearchResponse)
@rate_limit_chat()
async def search_perplexity(
    request: Request,
    body: WebSearchRequest,
    settings: Settings = Depends(get_settings),
):
    try:
        return await perplexity_query(settings.perplexity_api_key, body.prompt)
    except WebSearchError as e:
        logger.warning(f"Perplexity search failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
