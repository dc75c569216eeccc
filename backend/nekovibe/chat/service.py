"""
Feedback chat: answer a free-text question about Neko Health.

Pipeline per question:
    detect clinics/source -> cached summaries -> web insights -> keyword
    snippets -> one model call, or the review map-reduce fallback when the
    structured context is empty or the caller asks for it.

The service never raises for upstream trouble: store errors shrink the
context, model errors become a canned answer.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..normalizers.text_utils import parse_datetime
from ..openai_provider import LanguageModel
from ..storage import FeedbackStore
from . import prompts
from .clinics import detect_clinics, detect_source_type
from .fallback import NO_ANSWER, ReviewFallback
from .keywords import extract_keywords
from .retrieval import (
    fetch_summaries,
    fetch_web_insights,
    format_insights,
    mark_relevant,
    pending_insight,
    search_snippets,
)

logger = logging.getLogger(__name__)

NO_INSIGHTS_ANSWER = (
    "No web search insights are currently available. The system is configured to "
    "fetch comprehensive market analysis and recent news trends, but data collection "
    "is pending. Please try again later or use the 'Run another web search' button "
    "for a real-time search."
)
ALL_CLINICS = "all clinics"


@dataclass
class ChatQuery:
    prompt: str
    sources: List[str] = field(default_factory=lambda: ["reviews"])
    clinics: Optional[List[str]] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    analyze_all: bool = False
    use_fallback: bool = False


@dataclass
class ChatAnswer:
    answer: str
    used_sources: List[str]
    model: Optional[str] = None
    clinics_considered: Union[List[str], str] = ALL_CLINICS
    summaries_used: int = 0
    search_results_used: int = 0
    used_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "used_sources": self.used_sources,
            "model": self.model,
            "clinics_considered": self.clinics_considered,
            "summaries_used": self.summaries_used,
            "search_results_used": self.search_results_used,
            "used_fallback": self.used_fallback,
        }


def date_window(
    date_from: Optional[str], date_to: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """(lower bound, exclusive upper bound) ISO dates; ``date_to`` is inclusive."""
    start = parse_datetime(date_from) if date_from else None
    end = parse_datetime(date_to) if date_to else None
    return (
        start.date().isoformat() if start else None,
        (end.date() + timedelta(days=1)).isoformat() if end else None,
    )


class FeedbackChatService:
    """Retrieval-augmented answers over stored feedback."""

    def __init__(
        self,
        store: FeedbackStore,
        model: Optional[LanguageModel],
        search_max_results: int = 30,
        review_fetch_limit: int = 300,
        chunk_size: int = 25,
    ):
        self.store = store
        self.model = model
        self.search_max_results = search_max_results
        self.fallback = ReviewFallback(store, model, review_fetch_limit, chunk_size)

    @property
    def model_name(self) -> Optional[str]:
        return self.model.model if self.model is not None else None

    async def _fallback_answer(
        self,
        query: ChatQuery,
        clinics: Sequence[str],
        date_from: Optional[str],
        date_before: Optional[str],
        summaries_used: int = 0,
    ) -> ChatAnswer:
        answer = await self.fallback.answer(query.prompt, clinics, date_from, date_before)
        return ChatAnswer(
            answer=answer,
            used_sources=["reviews"],
            model=self.model_name,
            clinics_considered=list(clinics) or ALL_CLINICS,
            summaries_used=summaries_used,
            used_fallback=True,
        )

    async def answer(self, query: ChatQuery) -> ChatAnswer:
        sources = query.sources or ["reviews"]
        clinics = query.clinics or detect_clinics(query.prompt)
        source_type = detect_source_type(query.prompt, sources)
        date_from, date_before = date_window(query.date_from, query.date_to)

        if query.analyze_all:
            logger.info("Chat: analyze_all requested, running fallback over all reviews")
            return await self._fallback_answer(
                query, query.clinics or [], date_from, date_before
            )
        if query.use_fallback:
            return await self._fallback_answer(query, clinics, date_from, date_before)

        has_articles = "articles" in sources
        only_articles = has_articles and "reviews" not in sources

        summaries = [] if only_articles else await fetch_summaries(
            self.store, clinics, source_type
        )

        insights: List[Dict[str, Any]] = []
        if has_articles:
            insights = await fetch_web_insights(self.store)
            if not insights:
                if only_articles:
                    return ChatAnswer(answer=NO_INSIGHTS_ANSWER, used_sources=["articles"])
                insights = [pending_insight()]

        keywords = extract_keywords(query.prompt)
        snippets = [] if only_articles else await search_snippets(
            self.store,
            keywords,
            clinics,
            source_type,
            date_from,
            date_before,
            limit=self.search_max_results,
        )

        in_scope = [
            s for s in summaries if not clinics or s.get("clinic_id") in clinics
        ]
        if not only_articles and not snippets and not in_scope:
            logger.info("Chat: no summaries or snippets in scope, using review fallback")
            return await self._fallback_answer(query, clinics, date_from, date_before)

        if only_articles:
            system = prompts.ARTICLES_SYSTEM_PROMPT
            user = prompts.build_articles_prompt(
                query.prompt, format_insights(mark_relevant(insights, keywords))
            )
            temperature = prompts.ARTICLES_TEMPERATURE
        else:
            system = prompts.FEEDBACK_SYSTEM_PROMPT
            user = prompts.build_feedback_prompt(
                query.prompt, summaries, snippets, format_insights(insights), clinics
            )
            temperature = prompts.FEEDBACK_TEMPERATURE

        answer = None
        if self.model is not None:
            answer = await self.model.complete(system, user, temperature=temperature)

        return ChatAnswer(
            answer=answer or NO_ANSWER,
            used_sources=list(sources),
            model=self.model_name,
            clinics_considered=list(clinics) or ALL_CLINICS,
            summaries_used=len(summaries),
            search_results_used=len(snippets),
        )
