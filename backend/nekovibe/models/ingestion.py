"""Ingestion and maintenance response models."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

InsightProvider = Literal["tavily", "gnews", "perplexity"]
InsightScope = Literal["comprehensive", "last_7_days"]


class IngestionErrorModel(BaseModel):
    item: str
    error: str


class IngestionResponse(BaseModel):
    success: bool = True
    added: int = 0
    skipped: int = 0
    total_found: int = 0
    errors: List[IngestionErrorModel] = Field(default_factory=list)


class InsightsRequest(BaseModel):
    providers: List[InsightProvider] = Field(
        default_factory=lambda: ["tavily", "gnews", "perplexity"]
    )
    scopes: List[InsightScope] = Field(default_factory=lambda: ["comprehensive", "last_7_days"])


class InsightResultModel(BaseModel):
    stored: bool
    scope: str
    provider: str
    error: Optional[str] = None


class InsightsResponse(BaseModel):
    success: bool
    results: List[InsightResultModel]


class DateRepairResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    total: int
    fixed: int
    errors: List[str] = Field(default_factory=list)


class ArticleUpdateResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    total: int
    updated: int
    skipped: int
    errors: List[str] = Field(default_factory=list)
