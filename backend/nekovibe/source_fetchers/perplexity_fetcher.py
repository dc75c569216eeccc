"""
Perplexity chat-completions fetcher.

Perplexity's online models answer with live web citations. The response is
returned as the raw JSON dict; :func:`extract_citations` merges the explicit
``citations`` list with URLs quoted in the answer text.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

PERPLEXITY_API_URL = "https://api.perplexity.ai/chat/completions"
PERPLEXITY_MODEL = "llama-3.1-sonar-large-128k-online"

RESEARCH_SYSTEM_PROMPT = (
    "You are a research assistant that provides comprehensive, factual analysis "
    "based on web sources. Always cite your sources."
)

_URL_RE = re.compile(r"https?://[^\s)]+")


async def perplexity_chat(
    api_key: str,
    prompt: str,
    temperature: float = 0.2,
    max_tokens: int = 4000,
    timeout: float = 60.0,
) -> Optional[Dict[str, Any]]:
    """Send one research prompt to Perplexity. Returns None on failure."""
    payload = {
        "model": PERPLEXITY_MODEL,
        "messages": [
            {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                PERPLEXITY_API_URL,
                json=payload,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
            return response.json()
    except Exception as e:
        logger.warning(f"Perplexity request failed: {e}")
        return None


def answer_text(response: Dict[str, Any]) -> str:
    choices = response.get("choices") or []
    if not choices:
        return ""
    return ((choices[0].get("message") or {}).get("content") or "").strip()


def extract_citations(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Citations from the response plus any URL quoted in the answer."""
    citations: List[Dict[str, Any]] = []
    for citation in response.get("citations") or []:
        if isinstance(citation, str):
            citations.append({"url": citation})
        elif isinstance(citation, dict) and citation.get("url"):
            citations.append(
                {
                    "url": citation["url"],
                    "title": citation.get("title"),
                    "published_at": citation.get("published_at"),
                }
            )

    seen = {c["url"] for c in citations}
    for url in _URL_RE.findall(answer_text(response)):
        if url not in seen:
            seen.add(url)
            citations.append({"url": url})
    return citations
