"""
Internal review uploads and their summaries.

An upload parses the CSV, inserts the reviews whose hash is not stored yet
under a fresh batch id, then regenerates two sentiment summaries: one for
the batch just uploaded (``latest_upload``) and one for everything stored
(``all_time``). Summary failures never undo the inserted reviews.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

from ..normalizers.text_utils import parse_datetime
from ..openai_provider import LanguageModel
from ..storage import FeedbackStore
from .csv_parser import parse_internal_reviews_csv

logger = logging.getLogger(__name__)

ALL_TIME_REVIEW_LIMIT = 1000
SUMMARY_REVIEW_LIMIT = 500

SENTIMENT_SYSTEM_PROMPT = (
    "You are an expert at sentiment analysis of customer reviews. "
    "Be precise about wording and quantify everything."
)

SENTIMENT_PROMPT = """You are analyzing internal reviews for Neko Health. Below are {count} reviews.

CRITICAL: Focus on sentiment analysis. Identify:
- Positive sentiment (what customers liked)
- Negative sentiment (complaints, issues, criticisms)
- Neutral sentiment (factual statements)

For each sentiment category, be specific about:
- Exact wording/phrases used
- Frequency (how many reviews mention it)
- Context (which clinics, time periods)

Reviews:
{reviews}

Provide a comprehensive summary (3-5 paragraphs) that captures:
1. Overall sentiment distribution
2. Key positive themes with specific examples
3. Key negative themes with specific examples and exact wording
4. Clinic-specific patterns if any
5. Time-based trends if visible

Be quantitative: "X out of Y reviews mentioned [issue]" or "X reviews (Y%) reported [problem]"."""


def new_batch_id() -> str:
    return f"batch_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def review_date(row: Dict[str, Any], default: str = "Unknown date") -> str:
    published = parse_datetime(row.get("published_at"))
    return published.date().isoformat() if published else default


def format_reviews_for_summary(reviews: Sequence[Dict[str, Any]]) -> str:
    return "\n\n".join(
        f'{idx}. [{review_date(r)}] {r.get("clinic_name")} - Rating: {r.get("rating")}/5 - '
        f'"{(r.get("comment") or "")[:200]}"'
        for idx, r in enumerate(reviews[:SUMMARY_REVIEW_LIMIT], start=1)
    )


class InternalReviewService:
    """CSV upload and summary regeneration for internal reviews."""

    def __init__(self, store: FeedbackStore, model: Optional[LanguageModel]):
        self.store = store
        self.model = model

    async def summarize(self, reviews: Sequence[Dict[str, Any]]) -> Optional[str]:
        if self.model is None or not reviews:
            return None
        prompt = SENTIMENT_PROMPT.format(
            count=len(reviews), reviews=format_reviews_for_summary(reviews)
        )
        return await self.model.complete(SENTIMENT_SYSTEM_PROMPT, prompt, temperature=0.2)

    async def refresh_summaries(self, batch_id: str) -> None:
        """Regenerate the latest-upload and all-time summaries."""
        latest = await self.store.fetch_internal_reviews(batch_id=batch_id)
        text = await self.summarize(latest)
        if text:
            await self.store.replace_internal_summary("latest_upload", text, len(latest), batch_id)

        everything = await self.store.fetch_internal_reviews(limit=ALL_TIME_REVIEW_LIMIT)
        text = await self.summarize(everything)
        if text:
            await self.store.replace_internal_summary("all_time", text, len(everything), None)

    async def upload(self, csv_text: str) -> Dict[str, Any]:
        """Store new reviews from a CSV export. Raises CsvFormatError on a bad header."""
        reviews = parse_internal_reviews_csv(csv_text)
        batch_id = new_batch_id()
        added = 0
        skipped = 0
        errors: List[str] = []

        for review in reviews:
            try:
                if await self.store.internal_review_exists(review.review_hash):
                    skipped += 1
                    continue
                await self.store.insert_internal_review(review.to_row(batch_id))
                added += 1
            except Exception as e:
                logger.warning(f"Failed to insert internal review {review.review_hash}: {e}")
                errors.append(f"Failed to insert review: {e}")

        if added > 0 and self.model is not None:
            try:
                await self.refresh_summaries(batch_id)
            except Exception as e:
                logger.error(f"Error generating internal summaries: {e}", exc_info=True)
                errors.append("Failed to generate summaries (reviews were still added)")

        logger.info(
            f"Internal reviews upload {batch_id}: added={added} skipped={skipped} "
            f"total={len(reviews)}"
        )
        return {
            "success": True,
            "added": added,
            "skipped": skipped,
            "total": len(reviews),
            "batch_id": batch_id,
            "errors": errors,
        }
