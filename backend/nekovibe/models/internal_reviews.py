"""Internal review upload and chat models."""

from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class InternalReviewFilters(BaseModel):
    clinic: Optional[Union[str, List[str]]] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None

    @field_validator("clinic")
    @classmethod
    def clinic_list(cls, v):
        if v is None:
            return None
        values = [v] if isinstance(v, str) else v
        cleaned = [c.strip() for c in values if c and c.strip()]
        return cleaned or None


class InternalChatRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=4000)
    analyze_all: bool = False
    filters: Optional[InternalReviewFilters] = None


class InternalChatResponse(BaseModel):
    answer: str
    reviews_used: int
    summaries_used: int
    analyze_all: bool


class UploadResponse(BaseModel):
    success: bool = True
    added: int
    skipped: int
    total: int
    batch_id: str
    errors: List[str] = Field(default_factory=list)
