"""
Google reviews ingestion job.

For every configured clinic (GOOGLE_PLACES_IDS: place ids or Maps URLs)
resolve the place, pull the reviews exposed by Place Details and store the
new ones. Without GOOGLE_PLACES_IDS the clinics that already have stored
reviews are refreshed.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..normalizers import parse_google_review
from ..records import IngestionResult
from ..source_fetchers.google_places_fetcher import GooglePlacesClient, split_place_identifiers
from ..storage import FeedbackStore
from .base import IngestionJob

logger = logging.getLogger(__name__)

_NON_ID_CHARS_RE = re.compile(r"[^A-Za-z0-9_]")
_WHITESPACE_RE = re.compile(r"\s")


def review_external_id(review: Dict[str, Any], place_id: str) -> str:
    """Stable id from place, author, timestamp and the start of the text."""
    text_head = _WHITESPACE_RE.sub("", (review.get("text") or "")[:20])
    raw_id = f"{place_id}_{review.get('author_name', '')}_{review.get('time', '')}_{text_head}"
    return _NON_ID_CHARS_RE.sub("_", raw_id)


def _review_time(review: Dict[str, Any]) -> Optional[datetime]:
    epoch = review.get("time")
    if not isinstance(epoch, (int, float)):
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class GoogleReviewsJob(IngestionJob):
    """Fetch Google reviews for every configured clinic."""

    name = "google_reviews"

    def __init__(
        self,
        settings: Settings,
        store: FeedbackStore,
        places: Optional[GooglePlacesClient] = None,
    ):
        settings.require("google_places_api_key")
        super().__init__(store)
        self.settings = settings
        self.places = places or GooglePlacesClient(settings.google_places_api_key)

    async def _identifiers(self) -> List[str]:
        identifiers = split_place_identifiers(self.settings.google_places_ids)
        if identifiers:
            return identifiers
        logger.warning("GOOGLE_PLACES_IDS not set, refreshing clinics already in the store")
        return await self.store.get_clinic_place_ids()

    async def run(self) -> IngestionResult:
        result = IngestionResult()
        identifiers = await self._identifiers()
        if not identifiers:
            logger.warning("No clinic place ids configured")
            return result

        logger.info(f"Starting Google reviews ingestion for {len(identifiers)} clinic(s)")
        for identifier in identifiers:
            await self._ingest_clinic(identifier, result)

        logger.info(
            f"Google reviews ingestion complete: added={result.added} "
            f"skipped={result.skipped} errors={len(result.errors)}"
        )
        return result

    async def _ingest_clinic(self, identifier: str, result: IngestionResult) -> None:
        try:
            place = await self.places.resolve(identifier)
            if place is None:
                result.fail(identifier, "Could not determine Place ID from URL")
                return

            reviews = await self.places.fetch_reviews(place.place_id)
            logger.info(f"{place.clinic_name} ({place.place_id}): {len(reviews)} reviews from API")
            result.total_found += len(reviews)

            for review in reviews:
                parsed = parse_google_review(
                    {
                        "external_id": review_external_id(review, place.place_id),
                        "clinic_place_id": place.place_id,
                        "clinic_name": place.clinic_name,
                        "author_name": review.get("author_name"),
                        "author_url": review.get("author_url"),
                        "rating": review.get("rating"),
                        "text": review.get("text"),
                        "published_at": _review_time(review),
                        "language": review.get("language"),
                        "relative_time_description": review.get("relative_time_description"),
                    }
                )
                if parsed is None:
                    result.fail("review", "Failed to parse review")
                    continue
                result.record(parsed.external_id, await self.store.store_google_review(parsed))
        except Exception as e:
            logger.error(f"Error fetching reviews for {identifier[:60]}: {e}", exc_info=True)
            result.fail(identifier, str(e))
