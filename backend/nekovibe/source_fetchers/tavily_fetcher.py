"""
Tavily search fetcher.

Calls the synchronous ``TavilyClient`` on a worker thread. Used for article
discovery, LinkedIn discovery (``site:linkedin.com`` queries), the cached
web-search insights, on-demand web search and article date lookups.

Usage:
    from nekovibe.source_fetchers.tavily_fetcher import tavily_search

    data = await tavily_search(api_key, "Neko Health", max_results=10)
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


async def tavily_search(api_key: str, query: str, **options: Any) -> Optional[Dict[str, Any]]:
    """
    Run a Tavily search and return the raw response dict.

    ``options`` are passed through to ``TavilyClient.search`` (search_depth,
    max_results, include_answer, include_raw_content, days, ...). Returns None
    when the search fails.
    """
    try:
        from tavily import TavilyClient

        client = TavilyClient(api_key=api_key)
        data = await asyncio.to_thread(client.search, query=query, **options)
    except Exception as e:
        logger.warning(f"Tavily search failed for '{query[:50]}': {e}")
        return None

    logger.info(
        f"Tavily search: '{query[:50]}' → {len(data.get('results') or [])} results"
    )
    return data


def extract_citations(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Citation list (url, title, published_at) from a Tavily response."""
    return [
        {
            "url": r.get("url"),
            "title": r.get("title"),
            "published_at": r.get("published_date"),
        }
        for r in response.get("results") or []
        if r.get("url")
    ]


def format_results(response: Dict[str, Any]) -> str:
    """The Tavily answer, or a numbered digest of the top results without one."""
    if response.get("answer"):
        return response["answer"]

    results = response.get("results") or []
    if not results:
        return "No results found."

    digest = "\n\n".join(
        f"[{idx}] {r.get('title', '')}\n{r.get('url', '')}\n{(r.get('content') or '')[:200]}..."
        for idx, r in enumerate(results[:10], start=1)
    )
    return f"Found {len(results)} relevant sources:\n\n{digest}"
