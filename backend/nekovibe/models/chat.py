"""
Feedback Chat Models

Request and response bodies for POST /api/v1/chat.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

SOURCE_CATEGORIES = {"reviews", "articles", "social"}


class ChatRequest(BaseModel):
    """A question about Neko Health feedback."""

    prompt: str = Field(..., min_length=1, max_length=4000, description="Free-text question")
    sources: List[str] = Field(
        default_factory=lambda: ["reviews"],
        description="Source categories to draw on: reviews, articles, social",
    )
    clinics: Optional[List[str]] = Field(
        None, description="Explicit clinic filter; overrides detection from the prompt"
    )
    date_from: Optional[str] = Field(None, description="Inclusive start date (YYYY-MM-DD)")
    date_to: Optional[str] = Field(None, description="Inclusive end date (YYYY-MM-DD)")
    analyze_all: bool = Field(False, description="Analyze the whole review table")
    use_fallback: bool = Field(False, description="Force the review map-reduce fallback")

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt is required")
        return v.strip()

    @field_validator("sources")
    @classmethod
    def known_sources(cls, v: List[str]) -> List[str]:
        unknown = [s for s in v if s not in SOURCE_CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown source categories: {', '.join(unknown)}")
        return v or ["reviews"]


class ChatResponse(BaseModel):
    answer: str
    used_sources: List[str]
    model: Optional[str] = None
    clinics_considered: Union[List[str], str] = "all clinics"
    summaries_used: int = 0
    search_results_used: int = 0
    used_fallback: bool = False
