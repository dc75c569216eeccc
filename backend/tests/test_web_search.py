"""
Tests for on-demand web search

Usage:
    cd backend && pytest tests/test_web_search.py -v
"""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, patch

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nekovibe.web_search import (
    PERPLEXITY_UNAVAILABLE_MESSAGE,
    TAVILY_UNAVAILABLE_MESSAGE,
    WebSearchError,
    perplexity_query,
    tavily_query,
)


def run(coro):
    return asyncio.run(coro)


class TestTavilyQuery:
    def test_no_key_returns_placeholder(self):
        result = run(tavily_query(None, "What is new?"))
        assert result["unavailable"] is True
        assert result["answer"] == TAVILY_UNAVAILABLE_MESSAGE
        assert result["citations"] == []

    def test_failure_returns_placeholder(self):
        with patch("nekovibe.source_fetchers.tavily_fetcher.tavily_search", AsyncMock(return_value=None)):
            result = run(tavily_query("key", "What is new?"))
        assert result["unavailable"] is True

    def test_success_frames_query_around_brand(self):
        search = AsyncMock(return_value={
            "answer": "Recent coverage is positive.",
            "results": [{"url": "https://a.com", "title": "A"}],
            "response_time": 0.8,
        })
        with patch("nekovibe.source_fetchers.tavily_fetcher.tavily_search", search):
            result = run(tavily_query("key", "press this month"))

        assert result["answer"] == "Recent coverage is positive."
        assert result["provider"] == "tavily"
        assert result["results_count"] == 1
        assert search.call_args.args[1].startswith("Neko Health: press this month")


class TestPerplexityQuery:
    def test_no_key_returns_placeholder(self):
        result = run(perplexity_query(None, "q"))
        assert result["unavailable"] is True
        assert result["answer"] == PERPLEXITY_UNAVAILABLE_MESSAGE

    def test_failure_raises(self):
        with patch("nekovibe.source_fetchers.perplexity_fetcher.perplexity_chat", AsyncMock(return_value=None)):
            with pytest.raises(WebSearchError):
                run(perplexity_query("key", "q"))

    def test_success(self):
        response = {
            "model": "sonar",
            "usage": {"total_tokens": 42},
            "choices": [{"message": {"content": "Answer"}}],
            "citations": ["https://x.com"],
        }
        chat = AsyncMock(return_value=response)
        with patch("nekovibe.source_fetchers.perplexity_fetcher.perplexity_chat", chat):
            result = run(perplexity_query("key", "clinic openings"))
        assert result == {
            "answer": "Answer",
            "citations": [{"url": "https://x.com"}],
            "model": "sonar",
            "tokens_used": 42,
        }
        assert '"clinic openings"' in chat.call_args.args[1]
