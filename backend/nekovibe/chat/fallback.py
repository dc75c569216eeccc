"""
Map-reduce fallback over raw Google reviews.

Used when structured retrieval finds nothing for the question, or when the
caller asks for it. Reviews matching the question's rating focus are paged
out of the store up to a safety cap, split into fixed-size chunks, and
summarized chunk by chunk; the chunk summaries are then reduced into one
answer.

``summarize_chunk`` and ``reduce_chunks`` are pure functions of their inputs
and the model, so they can be exercised with a stub model.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..normalizers.text_utils import parse_datetime, truncate
from ..openai_provider import LanguageModel
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)

NO_REVIEWS_ANSWER = (
    "I couldn't find relevant reviews for that request. "
    "Try a different clinic or timeframe."
)

NO_ANSWER = "I couldn't generate an answer right now."

FALLBACK_SYSTEM_PROMPT = (
    "You are Nekovibe, an expert summarizer focused on Neko Health customer sentiment."
)

CHUNK_PROMPT = """You are analyzing customer reviews for Neko Health.

Question: "{question}"
Rating focus: {focus}

Reviews:
{reviews}

Summarize the key points that answer the question. Highlight recurring themes, quantify counts when possible, and mention strong quotes or issues. Be concise but specific."""

REDUCE_PROMPT = """You are Nekovibe, an expert analyst. Combine the following chunk insights and stats to answer the question "{question}".

Context:
{stats}

Chunk insights:
{chunks}

Deliver a single cohesive answer. Reference the rating focus when helpful, quantify sentiment, and mention concrete examples."""

CHUNK_TEMPERATURE = 0.15
REDUCE_TEMPERATURE = 0.3
PAGE_SIZE = 100
REVIEW_CHARS = 380

# ============================================================================
# Rating focus
# ============================================================================

_NEGATIVE_RE = re.compile(
    r"(complain|bad|issue|problem|negative|angry|1 star|2 star|3 star|not happy|frustrat)"
)
_POSITIVE_RE = re.compile(r"(positive|great|best|amazing|5 star|happy|love|delight|recommend)")
_NONFIVE_RE = re.compile(r"(not 5|non 5|less than 5|under 5|not five)")

# focus -> (min_rating, max_rating, exclude_rating)
RATING_FILTERS = {
    "all": (None, None, None),
    "positive": (4, None, None),
    "negative": (None, 3, None),
    "nonfive": (None, None, 5),
}


def detect_rating_focus(question: str) -> str:
    lowered = (question or "").lower()
    if _NEGATIVE_RE.search(lowered):
        return "negative"
    if _POSITIVE_RE.search(lowered):
        return "positive"
    if _NONFIVE_RE.search(lowered):
        return "nonfive"
    return "all"


@dataclass
class ReviewStats:
    total: int
    focus: str
    focus_count: int
    per_rating: Dict[int, int] = field(default_factory=dict)

    def render(self) -> str:
        breakdown = " | ".join(f"{r}★: {self.per_rating.get(r, 0)}" for r in range(1, 6))
        return (
            f"Total reviews analyzed: {self.total}\n"
            f"Focus subset ({self.focus}): {self.focus_count}\n"
            f"Rating breakdown: {breakdown}"
        )


# ============================================================================
# Map and reduce stages
# ============================================================================


def format_review(row: Dict[str, Any]) -> str:
    published = parse_datetime(row.get("published_at"))
    date = published.date().isoformat() if published else "unknown date"
    return (
        f"Rating: {row.get('rating')}/5 | Clinic: {row.get('clinic_name')} | Date: {date}\n"
        f"{truncate(row.get('text') or '', REVIEW_CHARS)}"
    )


async def summarize_chunk(
    model: Optional[LanguageModel],
    rows: Sequence[Dict[str, Any]],
    question: str,
    focus: str = "all",
) -> Optional[str]:
    """Summarize one chunk of reviews against the question."""
    if model is None or not rows:
        return None
    prompt = CHUNK_PROMPT.format(
        question=question,
        focus=focus,
        reviews="\n\n".join(format_review(row) for row in rows),
    )
    return await model.complete(FALLBACK_SYSTEM_PROMPT, prompt, temperature=CHUNK_TEMPERATURE)


async def reduce_chunks(
    model: Optional[LanguageModel],
    chunk_texts: Sequence[str],
    stats: ReviewStats,
    question: str,
) -> str:
    """Merge chunk summaries into one answer.

    When the model call fails the answer is the stats block followed by the
    first two chunk insights.
    """
    stats_block = stats.render()
    answer = None
    if model is not None:
        prompt = REDUCE_PROMPT.format(
            question=question,
            stats=stats_block,
            chunks="\n\n".join(f"Chunk {i}:\n{text}" for i, text in enumerate(chunk_texts, 1)),
        )
        answer = await model.complete(
            FALLBACK_SYSTEM_PROMPT, prompt, temperature=REDUCE_TEMPERATURE
        )
    if answer:
        return answer

    top = "\n".join(f"{i}. {text}" for i, text in enumerate(chunk_texts[:2], 1))
    return f"{stats_block}\n\nTop insights:\n{top}"


def chunked(rows: Sequence[Dict[str, Any]], size: int) -> List[Sequence[Dict[str, Any]]]:
    size = max(1, size)
    return [rows[i:i + size] for i in range(0, len(rows), size)]


# ============================================================================
# Driver
# ============================================================================


class ReviewFallback:
    """Answer a question from raw reviews when cached context is not enough."""

    def __init__(
        self,
        store: FeedbackStore,
        model: Optional[LanguageModel],
        fetch_limit: int = 300,
        chunk_size: int = 25,
    ):
        self.store = store
        self.model = model
        self.fetch_limit = fetch_limit
        self.chunk_size = chunk_size

    async def collect_stats(self, focus: str, **scope) -> ReviewStats:
        min_rating, max_rating, exclude = RATING_FILTERS[focus]
        counts = await asyncio.gather(
            self.store.count_reviews(**scope),
            self.store.count_reviews(
                min_rating=min_rating, max_rating=max_rating, exclude_rating=exclude, **scope
            ),
            *(
                self.store.count_reviews(min_rating=r, max_rating=r, **scope)
                for r in range(1, 6)
            ),
        )
        return ReviewStats(
            total=counts[0],
            focus=focus,
            focus_count=counts[1],
            per_rating={r: counts[r + 1] for r in range(1, 6)},
        )

    async def fetch_reviews(self, focus: str, **scope) -> List[Dict[str, Any]]:
        """Page through matching reviews, newest first, up to the fetch cap."""
        min_rating, max_rating, exclude = RATING_FILTERS[focus]
        rows: List[Dict[str, Any]] = []
        while len(rows) < self.fetch_limit:
            page_size = min(PAGE_SIZE, self.fetch_limit - len(rows))
            page = await self.store.fetch_reviews(
                min_rating=min_rating,
                max_rating=max_rating,
                exclude_rating=exclude,
                offset=len(rows),
                limit=page_size,
                **scope,
            )
            rows.extend(page)
            if len(page) < page_size:
                break
        return rows

    async def answer(
        self,
        question: str,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
    ) -> str:
        scope = {
            "clinic_names": list(clinic_names) if clinic_names else None,
            "date_from": date_from,
            "date_before": date_before,
        }
        focus = detect_rating_focus(question)

        try:
            reviews = await self.fetch_reviews(focus, **scope)
        except Exception as e:
            logger.error(f"Error fetching reviews for fallback: {e}")
            return NO_ANSWER
        if not reviews:
            return NO_REVIEWS_ANSWER

        try:
            stats = await self.collect_stats(focus, **scope)
        except Exception as e:
            logger.warning(f"Review counts failed, using fetched rows: {e}")
            stats = ReviewStats(
                total=len(reviews),
                focus=focus,
                focus_count=len(reviews),
                per_rating={
                    r: sum(1 for row in reviews if row.get("rating") == r) for r in range(1, 6)
                },
            )

        chunk_texts = []
        for chunk in chunked(reviews, self.chunk_size):
            text = await summarize_chunk(self.model, chunk, question, focus)
            if text:
                chunk_texts.append(text)

        logger.info(
            f"Fallback: {len(reviews)} reviews in {len(chunk_texts)} summarized chunks "
            f"(focus={focus})"
        )
        return await reduce_chunks(self.model, chunk_texts, stats, question)
