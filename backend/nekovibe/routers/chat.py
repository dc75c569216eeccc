"""Feedback chat router."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..chat import ChatQuery, FeedbackChatService
from ..config import Settings
from ..deps import _safe_error, get_model, get_settings, get_store
from ..models.chat import ChatRequest, ChatResponse
from ..openai_provider import LanguageModel
from ..security import rate_limit_chat
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
@rate_limit_chat()
async def chat(
    request: Request,
    body: ChatRequest,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """Answer a question from summaries, snippets, web insights or raw reviews."""
    service = FeedbackChatService(
        store,
        model,
        search_max_results=settings.search_max_results,
        review_fetch_limit=settings.review_fetch_limit,
        chunk_size=settings.chunk_size,
    )
    query = ChatQuery(
        prompt=body.prompt,
        sources=body.sources,
        clinics=body.clinics,
        date_from=body.date_from,
        date_to=body.date_to,
        analyze_all=body.analyze_all,
        use_fallback=body.use_fallback,
    )
    try:
        result = await service.answer(query)
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("chat", e)},
        )
    return result.to_dict()
