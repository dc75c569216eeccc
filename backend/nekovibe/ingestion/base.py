"""
Shared pieces of the ingestion jobs.

A job fetches candidate items from one source, normalizes them and hands
them to the store adapter. ``run()`` reports an
:class:`~nekovibe.records.IngestionResult`; one failing item is recorded in
``errors`` and never aborts the run. Missing credentials are detected in the
constructor via ``Settings.require`` so a misconfigured job fails before any
work begins.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, TypeVar
from urllib.parse import urlsplit

from ..records import Article, IngestionResult
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_url(url: str) -> str:
    """Scheme + host + path, lowercased, without query or fragment."""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return url.strip().lower().split("?")[0].split("#")[0]
    return f"{parts.scheme}://{parts.netloc}{parts.path}".lower()


def dedupe_by_url(items: Iterable[T], url_of: Callable[[T], str]) -> List[T]:
    """Keep the first item for each normalized URL, preserving order."""
    seen = set()
    unique = []
    for item in items:
        key = normalize_url(url_of(item))
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


class IngestionJob(ABC):
    """Base class for the source-specific ingestion jobs."""

    name = "ingestion"

    def __init__(self, store: FeedbackStore):
        self.store = store

    @abstractmethod
    async def run(self) -> IngestionResult:
        ...

    async def store_articles(
        self,
        raw_items: List[Dict[str, Any]],
        parse: Callable[[Dict[str, Any]], Article],
        result: IngestionResult,
    ) -> None:
        """Normalize and store raw article payloads, folding outcomes into result."""
        for raw in raw_items:
            item_id = raw.get("url") or raw.get("external_id") or "article"
            try:
                article = parse(raw)
                if article is None:
                    result.fail(item_id, "Failed to parse article")
                    continue
                result.record(article.url, await self.store.store_article(article))
            except Exception as e:
                logger.warning(f"[{self.name}] Error processing {item_id}: {e}")
                result.fail(item_id, str(e))
