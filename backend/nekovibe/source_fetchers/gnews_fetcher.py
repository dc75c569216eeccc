"""
GNews API fetcher.

Searches the GNews v4 ``search`` endpoint for news articles. Returns an
empty list when the API fails or rate-limits; the callers treat that as
"nothing found".
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

GNEWS_API_URL = "https://gnews.io/api/v4"


@dataclass
class GNewsArticle:
    """A single GNews search hit."""

    title: str
    url: str
    description: str = ""
    content: str = ""
    image: Optional[str] = None
    published_at: Optional[str] = None
    source_name: str = ""
    source_url: str = ""


async def search_news(
    api_key: str,
    query: str,
    max_results: int = 50,
    days: Optional[int] = None,
    timeout: float = 15.0,
) -> List[GNewsArticle]:
    """
    Search GNews for English-language articles, newest first.

    Args:
        api_key: GNews API token
        query: Search query string (supports OR and quoted phrases)
        max_results: Maximum number of articles to return
        days: Restrict to the last N days (GNews ``in`` parameter)
    """
    params = {
        "q": query,
        "token": api_key,
        "max": str(max_results),
        "lang": "en",
        "sortby": "publishedAt",
    }
    if days:
        params["in"] = f"{days}d"

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(f"{GNEWS_API_URL}/search", params=params)
            response.raise_for_status()
            data = response.json()
    except Exception as e:
        logger.warning(f"GNews search failed for '{query[:50]}': {e}")
        return []

    results = []
    for item in data.get("articles") or []:
        if not item.get("url"):
            continue
        source = item.get("source") or {}
        results.append(
            GNewsArticle(
                title=item.get("title") or "",
                url=item["url"],
                description=item.get("description") or "",
                content=item.get("content") or "",
                image=item.get("image"),
                published_at=item.get("publishedAt"),
                source_name=source.get("name") or "",
                source_url=source.get("url") or "",
            )
        )

    logger.info(f"GNews search: '{query[:50]}' → {len(results)} results")
    return results
