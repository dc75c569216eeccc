"""
Source fetchers for external review, news and web-search APIs.

Each fetcher talks to one upstream service and degrades to an empty result
(or None) when that service fails, so ingestion jobs can keep going.

Fetchers:
- google_places_fetcher: Google Places Details / Text Search (httpx)
- gnews_fetcher: GNews v4 search (httpx)
- tavily_fetcher: Tavily search (tavily-python)
- perplexity_fetcher: Perplexity online chat completions (httpx)
- page_fetcher: article pages and their publication dates (aiohttp + bs4)
"""

from .gnews_fetcher import GNewsArticle, search_news
from .google_places_fetcher import GooglePlacesClient, PlaceInfo, split_place_identifiers
from .page_fetcher import PageFetcher, extract_published_date
from .perplexity_fetcher import perplexity_chat
from .tavily_fetcher import tavily_search

__all__ = [
    "GNewsArticle",
    "search_news",
    "GooglePlacesClient",
    "PlaceInfo",
    "split_place_identifiers",
    "PageFetcher",
    "extract_published_date",
    "perplexity_chat",
    "tavily_search",
]
