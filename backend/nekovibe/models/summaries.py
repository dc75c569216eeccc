"""Summary generation request and result models."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SummaryScope = Literal["all_time", "last_90_days", "last_30_days", "last_7_days"]
SourceType = Literal["google_review", "press_article", "social_post", "blog_post"]


class SummaryRequest(BaseModel):
    """
    Generate one summary, or every combination when clinic_id, source_type
    and scope are all omitted.
    """

    clinic_id: Optional[str] = None
    source_type: Optional[SourceType] = None
    scope: Optional[SummaryScope] = None
    force_refresh: bool = False
    skip_global: bool = Field(False, description="Batch only: skip the global summaries")
    clinic_only: Optional[str] = Field(None, description="Batch only: process just this clinic")

    @property
    def is_batch(self) -> bool:
        return self.clinic_id is None and self.source_type is None and self.scope is None


class SummaryResultModel(BaseModel):
    clinic_id: Optional[str] = None
    source_type: Optional[str] = None
    scope: str
    status: Literal["success", "skipped", "empty", "error"]
    items_count: Optional[int] = None
    summary: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None


class BatchSummaryResponse(BaseModel):
    message: str
    results: List[SummaryResultModel]
    total: int
    processed: Optional[int] = None
    remaining_clinics: Optional[List[str]] = None
    current_clinic: Optional[str] = None
    processed_clinics: Optional[int] = None
    total_clinics: Optional[int] = None
