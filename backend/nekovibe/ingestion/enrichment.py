"""Article enrichment: short model summaries and LinkedIn post categorization."""

import logging
from typing import Optional

from ..openai_provider import LanguageModel

logger = logging.getLogger(__name__)

# Content shorter than this is not worth summarizing
MIN_SUMMARY_CONTENT = 200

COMPANY_NAMES = ("neko health", "nekoh", "nekohealth")
COMPANY_LINKEDIN_PATTERNS = ("/company/neko", "/company/neko-health", "/neko-health")

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert at summarizing articles and social media posts. "
    "Provide concise, informative summaries."
)


def categorize_linkedin_post(url: str, author: str, content: str) -> str:
    """``company_post`` for posts by the company itself, else ``organic_post``."""
    url_lower = (url or "").lower()
    author_lower = (author or "").lower()
    content_lower = (content or "").lower()

    if any(pattern in url_lower for pattern in COMPANY_LINKEDIN_PATTERNS):
        return "company_post"
    if any(name in author_lower for name in COMPANY_NAMES):
        return "company_post"
    if "neko health" in content_lower and any(
        marker in content_lower for marker in ("we ", "our ", "company", "team")
    ):
        return "company_post"
    return "organic_post"


async def summarize_content(
    model: Optional[LanguageModel], content: str, title: str
) -> Optional[str]:
    """2-3 sentence summary of an article, or None when not possible."""
    if model is None or len(content or "") <= MIN_SUMMARY_CONTENT:
        return None

    prompt = (
        "Summarize the following content about Neko Health in 2-3 sentences. "
        "Focus on key points and main message.\n\n"
        f"Title: {title}\n\n"
        f"Content:\n{content[:4000]}"
    )
    return await model.complete(SUMMARY_SYSTEM_PROMPT, prompt, temperature=0.3)
