"""
Web-search insight jobs.

Each job asks one external search/answer provider a fixed brand question for
a scope (``comprehensive`` or ``last_7_days``) and upserts the answer, its
citations and provider metadata into the insights table keyed by scope. The
chat endpoint reads these cached insights instead of calling the providers
on every question.

Usage:
    job = TavilyInsightsJob(settings, store)
    result = await job.run("comprehensive")
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..normalizers.text_utils import parse_datetime
from ..source_fetchers import perplexity_fetcher, tavily_fetcher
from ..source_fetchers.gnews_fetcher import GNewsArticle, search_news
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)

INSIGHT_SCOPES = ("comprehensive", "last_7_days")


@dataclass
class InsightResult:
    stored: bool
    scope: str
    provider: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stored": self.stored,
            "scope": self.scope,
            "provider": self.provider,
            "error": self.error,
        }


@dataclass
class InsightPayload:
    """What a provider returned, ready to be cached."""

    query_text: str
    response_text: str
    citations: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class InsightJob(ABC):
    """Fetch one provider's answer for a scope and cache it."""

    provider = "insights"
    scope_prefix = ""

    def __init__(self, store: FeedbackStore):
        self.store = store

    @abstractmethod
    async def fetch(self, scope: str) -> Optional[InsightPayload]:
        ...

    async def run(self, scope: str) -> InsightResult:
        if scope not in INSIGHT_SCOPES:
            return InsightResult(False, scope, self.provider, f"Unknown scope: {scope}")

        stored_scope = f"{self.scope_prefix}{scope}"
        try:
            payload = await self.fetch(scope)
            if payload is None:
                return InsightResult(
                    False,
                    stored_scope,
                    self.provider,
                    f"Failed to get response from {self.provider}",
                )
            await self.store.upsert_insight(
                stored_scope,
                payload.query_text,
                payload.response_text,
                payload.citations,
                payload.metadata,
            )
        except Exception as e:
            logger.error(f"[{self.provider}] insight job failed for {stored_scope}: {e}")
            return InsightResult(False, stored_scope, self.provider, str(e))

        logger.info(
            f"[{self.provider}] stored insight {stored_scope} "
            f"({len(payload.citations)} citations)"
        )
        return InsightResult(True, stored_scope, self.provider)


# ============================================================================
# Tavily
# ============================================================================

TAVILY_QUERIES = {
    "comprehensive": (
        "Neko Health health check clinics: overall public perception, customer "
        "reviews, media coverage, market positioning, competitive analysis, key "
        "differentiators, strengths, weaknesses, controversies, trends"
    ),
    "last_7_days": (
        "Neko Health latest news articles press releases blog posts social media "
        "mentions past 7 days"
    ),
}


class TavilyInsightsJob(InsightJob):
    provider = "tavily"

    def __init__(self, settings: Settings, store: FeedbackStore):
        settings.require("tavily_api_key")
        super().__init__(store)
        self.api_key = settings.tavily_api_key

    async def fetch(self, scope: str) -> Optional[InsightPayload]:
        query = TAVILY_QUERIES[scope]
        options: Dict[str, Any] = {
            "search_depth": "advanced" if scope == "comprehensive" else "basic",
            "include_answer": True,
            "include_images": False,
            "include_raw_content": False,
            "max_results": 20 if scope == "comprehensive" else 15,
        }
        if scope == "last_7_days":
            options["days"] = 7

        response = await tavily_fetcher.tavily_search(self.api_key, query, **options)
        if response is None:
            return None

        return InsightPayload(
            query_text=query,
            response_text=tavily_fetcher.format_results(response),
            citations=tavily_fetcher.extract_citations(response),
            metadata={
                "provider": "tavily",
                "response_time": response.get("response_time"),
                "results_count": len(response.get("results") or []),
                "follow_up_questions": response.get("follow_up_questions") or [],
            },
        )


# ============================================================================
# GNews
# ============================================================================

GNEWS_QUERIES = {
    "comprehensive": 'Neko Health OR "Neko Health" health check clinic preventive healthcare',
    "last_7_days": 'Neko Health OR "Neko Health"',
}

GNEWS_EMPTY_TEXT = """GNews search for "Neko Health" returned no accessible articles.

Note: GNews free plan has limitations:
- Real-time articles (less than 12 hours old) are delayed on free plans
- Historical articles (beyond 30 days) require a paid plan
- Articles may be filtered out due to these restrictions

GNews will continue to be checked daily/weekly. Consider upgrading to a paid GNews plan for full access to real-time and historical news articles."""


def format_gnews_summary(articles: List[GNewsArticle], scope: str) -> str:
    """Digest of GNews hits grouped by publisher, with the key articles listed."""
    scope_label = "comprehensive" if scope == "comprehensive" else "last 7 days"
    lines = [f"GNews found {len(articles)} news articles about Neko Health ({scope_label}):", ""]

    by_source: "OrderedDict[str, int]" = OrderedDict()
    for article in articles:
        name = article.source_name or "Unknown Source"
        by_source[name] = by_source.get(name, 0) + 1

    lines.append("**Top Sources:**")
    for name, count in list(by_source.items())[:10]:
        lines.append(f"- {name}: {count} article(s)")

    lines.extend(["", "**Key Articles:**", ""])
    for idx, article in enumerate(articles[:15], start=1):
        published = parse_datetime(article.published_at)
        date = published.date().isoformat() if published else "Unknown date"
        lines.append(f"{idx}. **{article.title}**")
        lines.append(f"   Source: {article.source_name or 'Unknown'}")
        lines.append(f"   Date: {date}")
        if article.description:
            ellipsis = "..." if len(article.description) > 200 else ""
            lines.append(f"   {article.description[:200]}{ellipsis}")
        lines.append(f"   URL: {article.url}")
        lines.append("")

    if len(articles) > 15:
        lines.append(f"... and {len(articles) - 15} more articles.")

    return "\n".join(lines).rstrip()


class GNewsInsightsJob(InsightJob):
    provider = "gnews"
    scope_prefix = "gnews_"

    def __init__(self, settings: Settings, store: FeedbackStore):
        settings.require("gnews_api_key")
        super().__init__(store)
        self.api_key = settings.gnews_api_key

    async def fetch(self, scope: str) -> Optional[InsightPayload]:
        query = GNEWS_QUERIES[scope]
        articles = await search_news(
            self.api_key,
            query,
            max_results=50 if scope == "comprehensive" else 30,
            days=7 if scope == "last_7_days" else None,
        )

        if not articles:
            logger.warning("No articles found from GNews, storing placeholder")
            return InsightPayload(
                query_text=query,
                response_text=GNEWS_EMPTY_TEXT,
                citations=[],
                metadata={
                    "provider": "gnews",
                    "total_articles": 0,
                    "articles_processed": 0,
                    "no_results": True,
                },
            )

        return InsightPayload(
            query_text=query,
            response_text=format_gnews_summary(articles, scope),
            citations=[
                {"url": a.url, "title": a.title, "published_at": a.published_at}
                for a in articles
            ],
            metadata={
                "provider": "gnews",
                "total_articles": len(articles),
                "articles_processed": len(articles),
            },
        )


# ============================================================================
# Perplexity
# ============================================================================

PERPLEXITY_QUERIES = {
    "comprehensive": """Provide a comprehensive analysis of Neko Health based on all available online sources. Include:
- Overall public perception and sentiment
- Most frequent positive feedback themes
- Most common criticisms and concerns
- Where Neko Health is currently positioned in the market
- Key differentiators mentioned
- Media coverage trends
- Social media sentiment
- Any notable controversies or issues
- Competitive positioning

Focus on factual, data-driven insights from reviews, articles, press releases, and social media. Cite specific sources.""",
    "last_7_days": """What are the latest news articles, blog posts, press releases, and social media mentions about Neko Health from the past 7 days? Focus on:
- New announcements or press releases
- Recent media coverage
- Latest social media discussions
- New blog posts or articles
- Any trending topics or controversies
- Recent customer feedback or reviews

Only include content from the last 7 days. Provide citations for all sources.""",
}


class PerplexityInsightsJob(InsightJob):
    provider = "perplexity"

    def __init__(self, settings: Settings, store: FeedbackStore):
        settings.require("perplexity_api_key")
        super().__init__(store)
        self.api_key = settings.perplexity_api_key

    async def fetch(self, scope: str) -> Optional[InsightPayload]:
        query = PERPLEXITY_QUERIES[scope]
        response = await perplexity_fetcher.perplexity_chat(self.api_key, query)
        if response is None:
            return None

        created = response.get("created")
        created_at = (
            datetime.fromtimestamp(created, tz=timezone.utc).isoformat()
            if isinstance(created, (int, float))
            else None
        )
        return InsightPayload(
            query_text=query,
            response_text=perplexity_fetcher.answer_text(response),
            citations=perplexity_fetcher.extract_citations(response),
            metadata={
                "provider": "perplexity",
                "model": response.get("model"),
                "tokens_used": (response.get("usage") or {}).get("total_tokens", 0),
                "created_at": created_at,
            },
        )


INSIGHT_JOBS = {
    "tavily": TavilyInsightsJob,
    "gnews": GNewsInsightsJob,
    "perplexity": PerplexityInsightsJob,
}
