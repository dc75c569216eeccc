"""Internal reviews router: CSV upload and chat."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from ..chat.service import date_window
from ..deps import _safe_error, get_model, get_store
from ..internal_reviews import CsvFormatError, InternalReviewService, InternalReviewsChat
from ..models.internal_reviews import InternalChatRequest, InternalChatResponse, UploadResponse
from ..openai_provider import LanguageModel
from ..security import rate_limit_chat, rate_limit_jobs
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/internal-reviews", tags=["internal-reviews"])


@router.post("/upload", response_model=UploadResponse)
@rate_limit_jobs()
async def upload_internal_reviews(
    request: Request,
    file: Optional[UploadFile] = File(None),
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """Store reviews from a CSV export, skipping rows already uploaded."""
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="File must be UTF-8 encoded CSV"
        )

    try:
        return await InternalReviewService(store, model).upload(text)
    except CsvFormatError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("internal review upload", e)},
        )


@router.post("/chat", response_model=InternalChatResponse)
@rate_limit_chat()
async def internal_reviews_chat(
    request: Request,
    body: InternalChatRequest,
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """Answer a question about internal reviews."""
    filters = body.filters
    date_from, date_before = date_window(
        filters.date_from if filters else None, filters.date_to if filters else None
    )
    try:
        return await InternalReviewsChat(store, model).answer(
            body.prompt,
            analyze_all=body.analyze_all,
            clinic_names=filters.clinic if filters else None,
            date_from=date_from,
            date_before=date_before,
        )
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("internal reviews chat", e)},
        )
