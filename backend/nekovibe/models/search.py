"""On-demand web search models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WebSearchRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)


class WebSearchResponse(BaseModel):
    answer: str
    citations: List[Dict[str, Any]] = Field(default_factory=list)
    unavailable: bool = False
    provider: Optional[str] = None
    results_count: Optional[int] = None
    response_time: Optional[float] = None
    model: Optional[str] = None
    tokens_used: Optional[int] = None
