"""
Chat over uploaded internal reviews.

By default the context is the latest upload plus the last week and last
month of reviews; ``analyze_all`` widens it to the newest 1000 reviews.
Stored summaries are always included. Answers are short and quantitative.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..openai_provider import LanguageModel
from ..storage import FeedbackStore
from .service import review_date

logger = logging.getLogger(__name__)

MAX_PROMPT_REVIEWS = 100
NO_MODEL_ANSWER = "OpenAI API key not configured."
NO_ANSWER = "I couldn't generate an answer right now. Please try again."

SYSTEM_PROMPT = """You are Nekovibe, an expert analyst for internal reviews at Neko Health.

CRITICAL RULES:
- Focus on SENTIMENT ANALYSIS - identify exact wording and formulations
- Be QUANTITATIVE - always provide numbers: "X out of Y reviews mentioned [issue]"
- Be CONCISE - max 100 words unless more detail is explicitly requested
- Use the summaries for overall patterns, use specific reviews for examples
- When mentioning negative feedback, ALWAYS quantify: "5 out of 320 reviews (1.6%) were negative"
- When citing specific problems, state how many reviews mentioned it
- Lead with numbers and key facts
- Use bullet points for multiple distinct data points

SENTIMENT ANALYSIS REQUIREMENT:
- Pay close attention to exact wording and formulations
- Distinguish between: complaints, criticisms, suggestions, neutral observations, praise
- Quote or paraphrase specific phrases when relevant
- Identify patterns in how customers express concerns

RESPONSE FORMAT:
- Keep replies concise, max 100 words unless more detail is explicitly requested
- Lead with numbers and key facts
- Example: "Marylebone: 45 of 200 reviews (22.5%) mention wait times. Spitalfields: 12 of 150 (8%)."
- Example: "Average rating 4.2/5 (180 five-star, 45 four-star, 12 three-star, 3 two-star, 0 one-star)\""""

ANALYZE_ALL_NOTE = "NOTE: User requested analysis of ALL reviews. Provide comprehensive answer."
RECENT_NOTE = "NOTE: Focus on latest reviews and recent patterns."


def dedupe_reviews(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique = []
    for r in rows:
        key = (r.get("published_at"), r.get("clinic_name"), (r.get("comment") or "")[:50])
        if key in seen:
            continue
        seen.add(key)
        unique.append(r)
    return unique


def build_context(summaries: Sequence[Dict[str, Any]], reviews: Sequence[Dict[str, Any]]) -> str:
    parts = []
    if summaries:
        parts.append("PRE-COMPUTED SUMMARIES:\n")
        for idx, s in enumerate(summaries, start=1):
            parts.append(
                f"Summary {idx} ({s.get('scope')}, {s.get('reviews_covered_count')} reviews):\n"
                f"{s.get('summary_text')}\n"
            )
    if reviews:
        parts.append(f"\nSPECIFIC REVIEW EXAMPLES ({len(reviews)} reviews):\n")
        for idx, r in enumerate(reviews[:MAX_PROMPT_REVIEWS], start=1):
            parts.append(
                f'{idx}. [{review_date(r, "Unknown")}] {r.get("clinic_name")} - '
                f'{r.get("rating")}/5: "{r.get("comment")}"'
            )
    return "\n".join(parts)


class InternalReviewsChat:
    """Answer questions about internal reviews."""

    def __init__(
        self,
        store: FeedbackStore,
        model: Optional[LanguageModel],
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.model = model
        self.now = now

    async def collect_reviews(
        self,
        analyze_all: bool,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        filters = {
            "clinic_names": clinic_names or None,
            "date_from": date_from,
            "date_before": date_before,
        }
        if analyze_all:
            return await self.store.fetch_internal_reviews(limit=1000, **filters)

        rows: List[Dict[str, Any]] = []
        batch_id = await self.store.latest_internal_batch_id()
        if batch_id:
            rows.extend(await self.store.fetch_internal_reviews(batch_id=batch_id, **filters))

        week_ago = (self.now() - timedelta(days=7)).isoformat()
        month_ago = (self.now() - timedelta(days=30)).isoformat()
        rows.extend(await self.store.fetch_internal_reviews(since=week_ago, limit=200, **filters))
        rows.extend(await self.store.fetch_internal_reviews(since=month_ago, limit=500, **filters))
        return dedupe_reviews(rows)

    async def answer(
        self,
        prompt: str,
        analyze_all: bool = False,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
    ) -> Dict[str, Any]:
        reviews = await self.collect_reviews(analyze_all, clinic_names, date_from, date_before)
        summaries = await self.store.list_internal_summaries()

        if self.model is None:
            answer = NO_MODEL_ANSWER
        else:
            user = (
                f"{build_context(summaries, reviews)}\n\n"
                f"User Question: {prompt}\n\n"
                f"{ANALYZE_ALL_NOTE if analyze_all else RECENT_NOTE}\n\n"
                "Answer the question based on the summaries and review examples above. "
                "Be quantitative, concise, and focus on sentiment analysis."
            )
            answer = await self.model.complete(SYSTEM_PROMPT, user, temperature=0.2) or NO_ANSWER

        return {
            "answer": answer,
            "reviews_used": len(reviews),
            "summaries_used": len(summaries),
            "analyze_all": analyze_all,
        }
