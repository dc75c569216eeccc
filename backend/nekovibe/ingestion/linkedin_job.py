"""
LinkedIn ingestion job.

LinkedIn has no usable public API, so posts are discovered through Tavily
``site:linkedin.com`` searches and stored as articles with source
``linkedin``. Each post is tagged company/organic on the way in.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..normalizers import parse_article
from ..records import IngestionResult
from ..source_fetchers.tavily_fetcher import tavily_search
from ..storage import FeedbackStore
from .base import IngestionJob, dedupe_by_url
from .enrichment import categorize_linkedin_post

logger = logging.getLogger(__name__)

SEARCH_TERMS = ["Neko Health", '"Neko Health"']


class LinkedInJob(IngestionJob):
    """Fetch LinkedIn posts mentioning Neko Health via Tavily."""

    name = "linkedin"

    def __init__(
        self,
        settings: Settings,
        store: FeedbackStore,
        search_terms: Optional[List[str]] = None,
    ):
        settings.require("tavily_api_key")
        super().__init__(store)
        self.settings = settings
        self.search_terms = search_terms or SEARCH_TERMS

    async def collect(self, result: IngestionResult) -> List[Dict[str, Any]]:
        posts: List[Dict[str, Any]] = []
        for term in self.search_terms:
            data = await tavily_search(
                self.settings.tavily_api_key,
                f"site:linkedin.com {term}",
                search_depth="basic",
                include_answer=False,
                include_raw_content=False,
                max_results=20,
            )
            if data is None:
                result.fail(term, f'Failed to fetch "{term}"')
                continue
            for r in data.get("results") or []:
                url = r.get("url") or ""
                if "linkedin.com" not in url:
                    continue
                posts.append(r)
        return dedupe_by_url(posts, lambda post: post["url"])

    def _to_raw(self, post: Dict[str, Any]) -> Dict[str, Any]:
        content = post.get("content") or ""
        author = post.get("author") or ""
        return {
            "external_id": post["url"],
            "url": post["url"],
            "source": "linkedin",
            "title": post.get("title") or "LinkedIn Post",
            "description": content[:500],
            "author": author or None,
            "published_at": post.get("published_date"),
            "content": content,
            "post_type": categorize_linkedin_post(post["url"], author, content),
        }

    async def run(self) -> IngestionResult:
        result = IngestionResult()
        posts = await self.collect(result)
        result.total_found = len(posts)
        logger.info(f"LinkedIn: {len(posts)} unique posts")

        await self.store_articles([self._to_raw(post) for post in posts], parse_article, result)

        logger.info(
            f"LinkedIn ingestion complete: added={result.added} "
            f"skipped={result.skipped} errors={len(result.errors)}"
        )
        return result
