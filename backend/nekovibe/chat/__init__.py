"""Feedback chat: retrieval, prompt assembly and the review fallback."""

from .clinics import CLINIC_MATCHERS, detect_clinics, detect_source_type
from .fallback import ReviewFallback, detect_rating_focus, reduce_chunks, summarize_chunk
from .keywords import extract_keywords
from .service import ChatAnswer, ChatQuery, FeedbackChatService

__all__ = [
    "CLINIC_MATCHERS",
    "detect_clinics",
    "detect_source_type",
    "extract_keywords",
    "detect_rating_focus",
    "summarize_chunk",
    "reduce_chunks",
    "ReviewFallback",
    "ChatQuery",
    "ChatAnswer",
    "FeedbackChatService",
]
