"""
Article normalizer.

Turns a raw article payload (news API hit, Tavily result, LinkedIn post)
into an :class:`~nekovibe.records.Article`, extracting readable text from
HTML with BeautifulSoup. Returns None for unusable payloads; never raises.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup

from ..records import Article
from .text_utils import clean_text, parse_datetime

logger = logging.getLogger(__name__)

# Regions stripped before text extraction
_NON_CONTENT_SELECTORS = (
    "script, style, noscript, nav, header, footer, aside, "
    ".advertisement, .ads, .sidebar"
)

# First match wins; falls back to <body>
_MAIN_CONTENT_SELECTORS = [
    "article",
    "main",
    ".content",
    ".post-content",
    ".entry-content",
    "#content",
]

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_EXTENSION_RE = re.compile(r"\.[^.]+$")

MIN_CONTENT_LENGTH = 50

_CONSUMED_KEYS = {
    "external_id",
    "source",
    "title",
    "description",
    "url",
    "author",
    "published_at",
    "content",
    "html",
}


def determine_source(explicit_source: Optional[str], url: Optional[str]) -> str:
    """Pick the article source category from an explicit value or the URL."""
    if explicit_source:
        return explicit_source.strip().lower()
    if not url:
        return "unknown"

    url_lower = url.lower()
    if "blog" in url_lower:
        return "blog"
    if "press" in url_lower or "news" in url_lower:
        return "press"
    if "article" in url_lower:
        return "article"
    if "medium.com" in url_lower or "substack.com" in url_lower:
        return "blog"
    return "article"


def title_from_url(url: str) -> str:
    """Derive a readable title from the last path segment of a URL."""
    try:
        parts = [p for p in urlparse(url).path.split("/") if p]
    except ValueError:
        return ""
    if not parts:
        return ""
    title = unquote(parts[-1]).replace("-", " ").replace("_", " ")
    return _EXTENSION_RE.sub("", title).strip()


def _make_soup(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception:
        return BeautifulSoup(html, "html.parser")


def extract_clean_text(html: Optional[str]) -> str:
    """Extract readable text from an HTML (or plain-text) document."""
    if not html:
        return ""

    try:
        soup = _make_soup(html)
        for element in soup.select(_NON_CONTENT_SELECTORS):
            element.decompose()

        content = ""
        for selector in _MAIN_CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                content = element.get_text(" ")
                break

        if not content:
            body = soup.body
            content = body.get_text(" ") if body is not None else soup.get_text(" ")

        return clean_text(content)
    except Exception as e:
        logger.debug(f"HTML parsing failed, stripping tags instead: {e}")
        return clean_text(_HTML_TAG_RE.sub("", html))


def parse_article(raw: Dict[str, Any]) -> Optional[Article]:
    """Parse and normalize raw article data."""
    try:
        external_id = raw.get("external_id")
        url = raw.get("url")
        if not external_id or not url:
            logger.warning("Article missing external_id or url: %r", raw)
            return None

        source = determine_source(raw.get("source"), url)
        title = clean_text(raw.get("title")) or title_from_url(url) or "Untitled"

        html = raw.get("html") or raw.get("content") or ""
        content = extract_clean_text(html)
        if len(content) < MIN_CONTENT_LENGTH:
            logger.warning(
                "Article has insufficient content: url=%s length=%d", url, len(content)
            )

        return Article(
            external_id=str(external_id),
            source=source,
            title=title,
            url=url,
            content=content,
            description=clean_text(raw.get("description")) or None,
            author=clean_text(raw.get("author")) or None,
            published_at=parse_datetime(raw.get("published_at")),
            raw_html=html or None,
            metadata={k: v for k, v in raw.items() if k not in _CONSUMED_KEYS},
        )
    except Exception as e:
        logger.error(f"Error parsing article: {e}", exc_info=True)
        return None
