"""
On-demand web search for the dashboard's "Run another web search" button.

Unlike the cached insights, these call the provider for every question. A
missing key degrades to a placeholder answer flagged ``unavailable``.
"""

import logging
from typing import Any, Dict, Optional

from .source_fetchers import perplexity_fetcher, tavily_fetcher

logger = logging.getLogger(__name__)

TAVILY_UNAVAILABLE_MESSAGE = """Tavily API is currently unavailable.

This feature allows you to search the web in real-time for the latest news, articles, and discussions about Neko Health. Once the Tavily API is configured, you'll be able to get fresh insights from across the internet.

For now, please use the "Query full dataset" button to get comprehensive answers from our stored reviews and summaries."""

PERPLEXITY_UNAVAILABLE_MESSAGE = (
    "Perplexity API is not configured. Please use the stored reviews and "
    "summaries, or configure PERPLEXITY_API_KEY to enable live research."
)

PERPLEXITY_CONTEXT_PROMPT = """You are researching Neko Health, a health check clinic company.

Context about Neko Health:
- Neko Health operates health check clinics in multiple locations (Marylebone, Spitalfields, Manchester, Covent Garden, Ostermalmstorg/Stockholm)
- They use advanced technology for comprehensive health assessments
- They focus on preventive healthcare and early detection

User Question: "{prompt}"

Provide a comprehensive, factual answer based on current web sources. Focus on:
- Recent news, articles, and press mentions
- Social media discussions
- Industry analysis
- Competitive positioning
- Public perception and sentiment

Cite all sources. Be specific and quantitative when possible."""


class WebSearchError(Exception):
    """The provider was configured but the call failed."""


def _unavailable(message: str) -> Dict[str, Any]:
    return {"answer": message, "citations": [], "unavailable": True}


async def tavily_query(api_key: Optional[str], prompt: str) -> Dict[str, Any]:
    """Live Tavily search framed around Neko Health."""
    if not api_key:
        logger.warning("TAVILY_API_KEY not set - returning placeholder")
        return _unavailable(TAVILY_UNAVAILABLE_MESSAGE)

    query = (
        f"Neko Health: {prompt}. Include recent news, articles, press mentions, "
        "social media discussions, reviews, and market analysis."
    )
    data = await tavily_fetcher.tavily_search(
        api_key,
        query,
        search_depth="advanced",
        include_answer=True,
        include_images=False,
        include_raw_content=False,
        max_results=15,
    )
    if data is None:
        return _unavailable(TAVILY_UNAVAILABLE_MESSAGE)

    return {
        "answer": tavily_fetcher.format_results(data),
        "citations": tavily_fetcher.extract_citations(data),
        "provider": "tavily",
        "results_count": len(data.get("results") or []),
        "response_time": data.get("response_time") or 0,
    }


async def perplexity_query(api_key: Optional[str], prompt: str) -> Dict[str, Any]:
    """Live Perplexity research answer. Raises WebSearchError when the call fails."""
    if not api_key:
        logger.warning("PERPLEXITY_API_KEY not set - returning placeholder")
        return _unavailable(PERPLEXITY_UNAVAILABLE_MESSAGE)

    data = await perplexity_fetcher.perplexity_chat(
        api_key, PERPLEXITY_CONTEXT_PROMPT.format(prompt=prompt)
    )
    if data is None:
        raise WebSearchError("Failed to query Perplexity")

    return {
        "answer": perplexity_fetcher.answer_text(data) or "No response from Perplexity",
        "citations": perplexity_fetcher.extract_citations(data),
        "model": data.get("model"),
        "tokens_used": (data.get("usage") or {}).get("total_tokens", 0),
    }
