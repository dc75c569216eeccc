"""
Nekovibe API Models

Pydantic models for request validation and response serialization.
"""

from .chat import ChatRequest, ChatResponse
from .ingestion import (
    ArticleUpdateResponse,
    DateRepairResponse,
    IngestionResponse,
    InsightsRequest,
    InsightsResponse,
)
from .internal_reviews import (
    InternalChatRequest,
    InternalChatResponse,
    InternalReviewFilters,
    UploadResponse,
)
from .search import WebSearchRequest, WebSearchResponse
from .summaries import BatchSummaryResponse, SummaryRequest, SummaryResultModel

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "IngestionResponse",
    "InsightsRequest",
    "InsightsResponse",
    "DateRepairResponse",
    "ArticleUpdateResponse",
    "InternalChatRequest",
    "InternalChatResponse",
    "InternalReviewFilters",
    "UploadResponse",
    "WebSearchRequest",
    "WebSearchResponse",
    "SummaryRequest",
    "SummaryResultModel",
    "BatchSummaryResponse",
]
