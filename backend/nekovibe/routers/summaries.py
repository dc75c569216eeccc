"""Summary generation router."""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import Settings
from ..deps import _safe_error, get_model, get_settings, get_store
from ..models.summaries import BatchSummaryResponse, SummaryRequest, SummaryResultModel
from ..openai_provider import LanguageModel
from ..security import rate_limit_jobs
from ..storage import FeedbackStore
from ..summary_service import SummaryGenerator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["summaries"])


@router.post(
    "/summaries/generate",
    response_model=Union[BatchSummaryResponse, SummaryResultModel],
)
@rate_limit_jobs()
async def generate_summaries(
    request: Request,
    body: Optional[SummaryRequest] = None,
    settings: Settings = Depends(get_settings),
    store: FeedbackStore = Depends(get_store),
    model: Optional[LanguageModel] = Depends(get_model),
):
    """
    Generate one summary, or run the batch when no combination is named.

    A partial batch reports the clinics still to do; calling again resumes,
    since summaries younger than 24 hours are skipped.
    """
    body = body or SummaryRequest()
    generator = SummaryGenerator(
        store,
        model,
        max_items=settings.summary_max_items,
        budget_seconds=settings.summary_budget_seconds,
    )

    try:
        if body.is_batch:
            report = await generator.run_batch(
                skip_global=body.skip_global,
                clinic_only=body.clinic_only,
                force_refresh=body.force_refresh,
            )
            return report.to_dict()

        result = await generator.generate_summary(
            clinic_id=body.clinic_id,
            source_type=body.source_type,
            scope=body.scope or "all_time",
            force_refresh=body.force_refresh,
        )
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": _safe_error("summary generation", e)},
        )

    if result.status == "error":
        return JSONResponse(status_code=500, content={"error": result.error, **result.to_dict()})
    return result.to_dict()
