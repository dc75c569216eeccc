"""
Article page fetcher using aiohttp and BeautifulSoup.

Fetches an article page and reads its publication date from the usual meta
tags or ``<time>`` element. Used by the article date repair when neither
the search API nor the URL nor the stored content carry a date.

Usage:
    async with PageFetcher() as fetcher:
        published = await fetcher.fetch_published_date(url)
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import aiohttp
from bs4 import BeautifulSoup

from ..normalizers.text_utils import parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_DATE_META_ATTRS = [
    {"property": "article:published_time"},
    {"name": "date"},
    {"name": "pubdate"},
    {"name": "publish-date"},
    {"itemprop": "datePublished"},
    {"property": "og:updated_time"},
]


class PageFetcher:
    """Fetches HTML pages with retries and extracts publication dates."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, max_retries: int = 2):
        self.timeout = timeout
        self.max_retries = max_retries
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout, headers={"User-Agent": USER_AGENT}
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def fetch_html(self, url: str) -> Optional[str]:
        """Fetch a page, retrying with backoff on 429 and network errors."""
        session = await self._ensure_session()

        for attempt in range(self.max_retries):
            try:
                async with session.get(url) as response:
                    if response.status == 200:
                        return await response.text()
                    if response.status == 429:
                        wait_time = 2 ** attempt
                        logger.warning(f"Rate limited on {url}, waiting {wait_time}s")
                        await asyncio.sleep(wait_time)
                        continue
                    logger.warning(f"HTTP {response.status} for {url}")
                    return None
            except asyncio.TimeoutError:
                logger.warning(
                    f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries})"
                )
            except aiohttp.ClientError as e:
                logger.warning(f"Client error fetching {url}: {e}")
            await asyncio.sleep(1)

        return None

    async def fetch_published_date(self, url: str) -> Optional[datetime]:
        html = await self.fetch_html(url)
        if not html:
            return None
        return extract_published_date(html)


def extract_published_date(html: str) -> Optional[datetime]:
    """Publication date from meta tags or the first ``<time datetime>``."""
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        soup = BeautifulSoup(html, "html.parser")

    for attrs in _DATE_META_ATTRS:
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            if parsed := parse_datetime(meta["content"]):
                return parsed

    time_elem = soup.find("time")
    if time_elem and time_elem.get("datetime"):
        return parse_datetime(time_elem["datetime"])
    return None
