"""
Articles, blogs and press ingestion job.

Searches GNews and Tavily for coverage of Neko Health, merges the hits of
every search term, drops duplicates by normalized URL and stores the new
articles. LinkedIn results are left to :mod:`nekovibe.ingestion.linkedin_job`.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from ..config import ConfigurationError, Settings
from ..normalizers import parse_article
from ..openai_provider import LanguageModel
from ..records import IngestionResult
from ..source_fetchers.gnews_fetcher import search_news
from ..source_fetchers.tavily_fetcher import tavily_search
from ..storage import FeedbackStore
from .base import IngestionJob, dedupe_by_url
from .enrichment import summarize_content

logger = logging.getLogger(__name__)

SEARCH_TERMS = ["Neko Health", '"Neko Health"', "Neko Health clinic"]


def categorize_source(url: str, source_name: str) -> str:
    """blog / press / article from the URL and the publisher name."""
    url_lower = url.lower()
    name_lower = (source_name or "").lower()
    if "blog" in url_lower or "blog" in name_lower:
        return "blog"
    if "press" in url_lower or "press" in name_lower or "news" in name_lower:
        return "press"
    return "article"


def _domain(url: str) -> str:
    host = urlsplit(url).hostname or ""
    return host.replace("www.", "") or "Unknown"


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}" if parts.netloc else ""


class ArticlesJob(IngestionJob):
    """Fetch press coverage from GNews and Tavily."""

    name = "articles"

    def __init__(
        self,
        settings: Settings,
        store: FeedbackStore,
        model: Optional[LanguageModel] = None,
        search_terms: Optional[List[str]] = None,
    ):
        if not settings.gnews_api_key and not settings.tavily_api_key:
            raise ConfigurationError("Neither GNEWS_API_KEY nor TAVILY_API_KEY configured")
        super().__init__(store)
        self.settings = settings
        self.model = model
        self.search_terms = search_terms or SEARCH_TERMS

    async def _from_gnews(self, term: str) -> List[Dict[str, Any]]:
        articles = await search_news(self.settings.gnews_api_key, term, max_results=50)
        return [
            {
                "title": a.title,
                "description": a.description,
                "content": a.content or a.description,
                "url": a.url,
                "image": a.image,
                "published_at": a.published_at,
                "source_name": a.source_name or "Unknown",
                "source_url": a.source_url,
                "provider": "gnews",
            }
            for a in articles
        ]

    async def _from_tavily(self, term: str) -> List[Dict[str, Any]]:
        data = await tavily_search(
            self.settings.tavily_api_key,
            f"{term} news articles press blog posts",
            search_depth="advanced",
            include_answer=False,
            include_raw_content=True,
            max_results=30,
        )
        hits = []
        for r in (data or {}).get("results") or []:
            url = r.get("url")
            if not url or "linkedin.com" in url:
                continue
            content = r.get("raw_content") or r.get("content") or ""
            hits.append(
                {
                    "title": r.get("title") or "Untitled",
                    "description": (r.get("content") or "")[:500],
                    "content": content,
                    "url": url,
                    "image": None,
                    "published_at": r.get("published_date"),
                    "source_name": r.get("author") or _domain(url),
                    "source_url": _origin(url),
                    "provider": "tavily",
                }
            )
        return hits

    async def collect(self) -> List[Dict[str, Any]]:
        """All search hits across providers and terms, deduplicated by URL."""
        hits: List[Dict[str, Any]] = []
        for term in self.search_terms:
            if self.settings.gnews_api_key:
                hits.extend(await self._from_gnews(term))
            if self.settings.tavily_api_key:
                hits.extend(await self._from_tavily(term))
        return dedupe_by_url(hits, lambda hit: hit["url"])

    async def _to_raw(self, hit: Dict[str, Any]) -> Dict[str, Any]:
        content = hit["content"] or hit["description"] or ""
        summary = await summarize_content(self.model, content, hit["title"])
        return {
            "external_id": hit["url"],
            "url": hit["url"],
            "source": categorize_source(hit["url"], hit["source_name"]),
            "title": hit["title"],
            "description": hit["description"],
            "author": hit["source_name"],
            "published_at": hit["published_at"],
            "content": content,
            "image": hit["image"],
            "source_url": hit["source_url"],
            "provider": hit["provider"],
            "summary": summary,
        }

    async def run(self) -> IngestionResult:
        result = IngestionResult()
        hits = await self.collect()
        result.total_found = len(hits)
        logger.info(f"Articles: {len(hits)} unique results across {len(self.search_terms)} terms")

        for hit in hits:
            try:
                if await self.store.article_exists(hit["url"]):
                    result.skipped += 1
                    continue
                raw = await self._to_raw(hit)
            except Exception as e:
                logger.warning(f"Error preparing article {hit['url']}: {e}")
                result.fail(hit["url"], str(e))
                continue
            await self.store_articles([raw], parse_article, result)

        logger.info(
            f"Articles ingestion complete: added={result.added} "
            f"skipped={result.skipped} errors={len(result.errors)}"
        )
        return result
