"""
Maintenance passes over stored articles.

``ArticleDateRepairer`` re-derives ``published_at`` for every article; the
first strategy that yields a plausible date wins:

1. Tavily lookup of the article URL
2. a date embedded in the URL
3. a date written in the stored content
4. the page's own meta tags (fetched with aiohttp)
5. a date field in the stored metadata
6. six months ago

``ArticleUpdater`` back-fills what newer ingestion runs record at insert
time: LinkedIn post categories and short model summaries.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from .ingestion.enrichment import MIN_SUMMARY_CONTENT, categorize_linkedin_post, summarize_content
from .normalizers.text_utils import parse_datetime
from .openai_provider import LanguageModel
from .source_fetchers.page_fetcher import PageFetcher
from .source_fetchers.tavily_fetcher import tavily_search
from .storage import FeedbackStore

logger = logging.getLogger(__name__)

ARTICLE_COLUMNS = (
    "id, external_id, source, title, author, url, content, description, published_at, metadata"
)

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)

URL_DATE_PATTERNS = [
    re.compile(r"\d{4}/\d{2}/\d{2}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d{2}/\d{2}/\d{4}"),
    re.compile(r"\d{4}/\d{2}"),
]

CONTENT_DATE_PATTERNS = [
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d{2}/\d{2}/\d{4}"),
    re.compile(rf"(?:{_MONTHS})\s+\d{{1,2}},\s+\d{{4}}", re.IGNORECASE),
    re.compile(r"Published:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    re.compile(r"Date:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    re.compile(rf"\d{{1,2}}\s+(?:{_MONTHS})\s+\d{{4}}", re.IGNORECASE),
]

METADATA_DATE_FIELDS = ("published_date", "publishedAt", "date", "pubDate", "published")

_RELATIVE_RE = re.compile(r"(\d+)\s*(minute|hour|day|week|month|year)s?\s*ago", re.IGNORECASE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_article_date(value: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse a date string, accepting only years after 2000 and up to next year.

    Relative strings such as ``"3 days ago"`` are resolved against ``now``.
    """
    if not value:
        return None
    now = now or _utcnow()

    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed if 2000 < parsed.year <= now.year + 1 else None

    match = _RELATIVE_RE.search(str(value))
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2).lower()
    if unit in ("minute", "hour", "day", "week"):
        resolved = now - timedelta(**{f"{unit}s": amount})
    else:
        resolved = now - relativedelta(**{f"{unit}s": amount})
    return resolved if resolved.year > 2000 else None


def _first_match(patterns: List[re.Pattern], text: str, now: datetime) -> Optional[datetime]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            candidate = match.group(1) if pattern.groups else match.group(0)
            parsed = parse_article_date(candidate, now)
            if parsed:
                return parsed
    return None


def date_from_url(url: str, now: Optional[datetime] = None) -> Optional[datetime]:
    if not url:
        return None
    return _first_match(URL_DATE_PATTERNS, url, now or _utcnow())


def date_from_content(content: str, now: Optional[datetime] = None) -> Optional[datetime]:
    if not content:
        return None
    return _first_match(CONTENT_DATE_PATTERNS, content, now or _utcnow())


def date_from_metadata(metadata: Dict[str, Any], now: Optional[datetime] = None) -> Optional[datetime]:
    for key in METADATA_DATE_FIELDS:
        parsed = parse_article_date((metadata or {}).get(key), now)
        if parsed:
            return parsed
    return None


class ArticleDateRepairer:
    """Recompute ``published_at`` for every stored article."""

    def __init__(
        self,
        store: FeedbackStore,
        tavily_api_key: Optional[str] = None,
        page_fetcher: Optional[PageFetcher] = None,
        fetch_pages: bool = True,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.tavily_api_key = tavily_api_key
        self.page_fetcher = page_fetcher
        self.fetch_pages = fetch_pages
        self.now = now

    async def _from_tavily(self, url: str) -> Optional[datetime]:
        if not self.tavily_api_key or not url:
            return None
        data = await tavily_search(
            self.tavily_api_key,
            url,
            search_depth="basic",
            include_answer=False,
            include_images=False,
            include_raw_content=False,
            max_results=1,
        )
        results = (data or {}).get("results") or []
        if results and results[0].get("published_date"):
            return parse_article_date(results[0]["published_date"], self.now())
        return None

    async def _from_page(self, fetcher: Optional[PageFetcher], url: str) -> Optional[datetime]:
        if fetcher is None or not url:
            return None
        published = await fetcher.fetch_published_date(url)
        if published and 2000 < published.year <= self.now().year + 1:
            return published
        return None

    async def resolve_date(
        self, article: Dict[str, Any], fetcher: Optional[PageFetcher] = None
    ) -> datetime:
        now = self.now()
        url = article.get("url") or ""
        content = article.get("content") or article.get("description") or ""

        found = await self._from_tavily(url)
        found = found or date_from_url(url, now)
        found = found or date_from_content(content, now)
        if found is None:
            found = await self._from_page(fetcher, url)
        found = found or date_from_metadata(article.get("metadata") or {}, now)
        return found or now - relativedelta(months=6)

    async def run(self) -> Dict[str, Any]:
        if self.page_fetcher is not None or not self.fetch_pages:
            return await self._repair_all(self.page_fetcher)
        async with PageFetcher() as fetcher:
            return await self._repair_all(fetcher)

    async def _repair_all(self, fetcher: Optional[PageFetcher]) -> Dict[str, Any]:
        articles = await self.store.list_articles(ARTICLE_COLUMNS)
        if not articles:
            return {"success": True, "message": "No articles found", "total": 0, "fixed": 0, "errors": []}

        fixed = 0
        errors: List[str] = []
        for article in articles:
            try:
                published = await self.resolve_date(article, fetcher)
                await self.store.update_article(article["id"], {"published_at": published.isoformat()})
                fixed += 1
            except Exception as e:
                logger.error(f"Error processing article {article.get('id')}: {e}")
                errors.append(f"Error processing: {article.get('title')}")

        logger.info(f"Article date repair: fixed {fixed}/{len(articles)}")
        return {"success": True, "total": len(articles), "fixed": fixed, "errors": errors}


class ArticleUpdater:
    """Back-fill LinkedIn post types and article summaries."""

    def __init__(self, store: FeedbackStore, model: Optional[LanguageModel]):
        self.store = store
        self.model = model

    async def updates_for(self, article: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Fields to write for one article, or None when it is up to date."""
        metadata = dict(article.get("metadata") or {})
        changed = False
        text = article.get("content") or article.get("description") or ""

        if article.get("source") == "linkedin" and not metadata.get("post_type"):
            metadata["post_type"] = categorize_linkedin_post(
                article.get("url") or "", article.get("author") or "", text
            )
            changed = True

        if not metadata.get("summary") and len(text) > MIN_SUMMARY_CONTENT and self.model:
            summary = await summarize_content(self.model, text, article.get("title") or "Untitled")
            if summary:
                metadata["summary"] = summary
                changed = True

        return {"metadata": metadata} if changed else None

    async def run(self) -> Dict[str, Any]:
        articles = await self.store.list_articles(ARTICLE_COLUMNS)
        if not articles:
            return {
                "success": True,
                "message": "No articles found",
                "total": 0,
                "updated": 0,
                "skipped": 0,
                "errors": [],
            }

        updated = 0
        skipped = 0
        errors: List[str] = []
        for article in articles:
            try:
                fields = await self.updates_for(article)
                if fields is None:
                    skipped += 1
                    continue
                await self.store.update_article(article["id"], fields)
                updated += 1
            except Exception as e:
                logger.error(f"Error processing article {article.get('id')}: {e}")
                errors.append(f"Error processing: {article.get('title')}")

        logger.info(f"Article update: updated={updated} skipped={skipped} total={len(articles)}")
        return {
            "success": True,
            "total": len(articles),
            "updated": updated,
            "skipped": skipped,
            "errors": errors,
        }
