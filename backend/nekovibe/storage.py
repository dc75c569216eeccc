"""
Supabase store adapter.

Wraps the synchronous supabase-py client and exposes the handful of
operations the jobs and services need. Every call is pushed onto a worker
thread with ``asyncio.to_thread`` so the event loop never blocks.

Write operations follow the store-if-absent contract: look the row up by
its natural key, insert it when absent and report the outcome as a
:class:`~nekovibe.records.StoreResult`. Database errors become
``StoreResult(stored=False, error=...)`` rather than exceptions. Storing a
review or article also mirrors it into ``feedback_items``; a failure of that
mirror write is logged and never fails the primary write.

Read helpers raise on database errors so each caller decides how to
degrade.

Usage::

    from nekovibe.storage import FeedbackStore

    store = FeedbackStore(supabase_client)
    result = await store.store_google_review(review)
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from postgrest.exceptions import APIError
from supabase import Client

from .records import (
    BLOG_POST,
    GOOGLE_REVIEW,
    PRESS_ARTICLE,
    SOCIAL_POST,
    UNKNOWN_CLINIC,
    Article,
    FeedbackItem,
    GoogleReview,
    StoreResult,
)

logger = logging.getLogger(__name__)

# Tables
GOOGLE_REVIEWS = "google_reviews"
ARTICLES = "articles"
FEEDBACK_ITEMS = "feedback_items"
FEEDBACK_SUMMARIES = "feedback_summaries"
INSIGHTS = "perplexity_insights"
INTERNAL_REVIEWS = "internal_reviews"
INTERNAL_REVIEW_SUMMARIES = "internal_review_summaries"


def _error_message(exc: Exception) -> str:
    if isinstance(exc, APIError):
        return exc.message or str(exc)
    return str(exc) or type(exc).__name__


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _match_nullable(query, column: str, value: Optional[str]):
    """Filter on ``column = value``, or ``column IS NULL`` when value is None."""
    if value is None:
        return query.is_(column, "null")
    return query.eq(column, value)


def article_source_type(source: str) -> str:
    """Map an article source category onto its feedback source type."""
    if source == "blog":
        return BLOG_POST
    if source in ("linkedin", "social"):
        return SOCIAL_POST
    return PRESS_ARTICLE


class FeedbackStore:
    """Async facade over the Supabase tables used by Nekovibe."""

    def __init__(self, client: Client):
        self.client = client

    async def _run(self, fn):
        return await asyncio.to_thread(fn)

    async def _exists(self, table: str, filters: Dict[str, Any]) -> bool:
        def query():
            q = self.client.table(table).select("id")
            for column, value in filters.items():
                q = q.eq(column, value)
            return q.limit(1).execute()

        response = await self._run(query)
        return bool(response.data)

    async def _insert_if_absent(
        self, table: str, key: Dict[str, Any], row: Dict[str, Any]
    ) -> StoreResult:
        try:
            if await self._exists(table, key):
                return StoreResult(stored=False)
            await self._run(lambda: self.client.table(table).insert(row).execute())
            return StoreResult(stored=True)
        except Exception as e:
            return StoreResult(stored=False, error=_error_message(e))

    # ------------------------------------------------------------------
    # Store-if-absent writes
    # ------------------------------------------------------------------

    async def store_feedback_item(self, item: FeedbackItem) -> StoreResult:
        """Insert a unified feedback row unless its dedup key already exists."""
        if not item.external_id:
            return StoreResult(stored=False, error="external_id is required in metadata")

        return await self._insert_if_absent(
            FEEDBACK_ITEMS,
            {
                "metadata->>external_id": item.external_id,
                "clinic_id": item.clinic_id,
                "source_type": item.source_type,
            },
            item.to_row(),
        )

    async def _mirror(self, item: FeedbackItem) -> None:
        try:
            result = await self.store_feedback_item(item)
            if result.error:
                logger.warning(
                    f"Failed to mirror {item.external_id} into feedback_items: {result.error}"
                )
        except Exception as e:
            logger.warning(f"Failed to mirror {item.external_id} into feedback_items: {e}")

    async def store_google_review(self, review: GoogleReview) -> StoreResult:
        """Store a review keyed on (external_id, clinic_place_id)."""
        result = await self._insert_if_absent(
            GOOGLE_REVIEWS,
            {
                "external_id": review.external_id,
                "clinic_place_id": review.clinic_place_id,
            },
            review.to_row(),
        )
        if result.stored:
            row = review.to_row()
            await self._mirror(
                FeedbackItem(
                    clinic_id=review.clinic_name,
                    source_type=GOOGLE_REVIEW,
                    text=review.text,
                    metadata={
                        "external_id": review.external_id,
                        "clinic_place_id": review.clinic_place_id,
                        "author_name": review.author_name,
                        "author_url": review.author_url,
                        "rating": review.rating,
                        "published_at": row["published_at"],
                        "response_text": review.response_text,
                        "response_published_at": row["response_published_at"],
                        "raw_data": review.raw_data,
                    },
                )
            )
        return result

    async def store_article(self, article: Article) -> StoreResult:
        """Store an article keyed on its external id (the URL)."""
        result = await self._insert_if_absent(
            ARTICLES, {"external_id": article.external_id}, article.to_row()
        )
        if result.stored:
            row = article.to_row()
            await self._mirror(
                FeedbackItem(
                    clinic_id=article.metadata.get("clinic_name") or UNKNOWN_CLINIC,
                    source_type=article_source_type(article.source),
                    text=article.description or article.content,
                    metadata={
                        "external_id": article.external_id,
                        "title": article.title,
                        "url": article.url,
                        "author": article.author,
                        "published_at": row["published_at"],
                        "source": article.source,
                        **article.metadata,
                    },
                )
            )
        return result

    async def get_clinic_place_ids(self) -> List[str]:
        """Unique place ids of clinics that already have stored reviews."""
        try:
            response = await self._run(
                lambda: self.client.table(GOOGLE_REVIEWS)
                .select("clinic_place_id")
                .order("clinic_place_id")
                .execute()
            )
        except Exception as e:
            logger.warning(f"Error fetching clinic place ids: {_error_message(e)}")
            return []
        return list(dict.fromkeys(r["clinic_place_id"] for r in response.data or []))

    # ------------------------------------------------------------------
    # Feedback items
    # ------------------------------------------------------------------

    async def distinct_clinic_ids(
        self, source_types: Sequence[str], page_size: int = 1000
    ) -> List[str]:
        """Clinic ids across every feedback row, read page by page."""
        clinic_ids = set()
        start = 0
        while True:
            response = await self._run(
                lambda: self.client.table(FEEDBACK_ITEMS)
                .select("id, clinic_id")
                .in_("source_type", list(source_types))
                .order("id")
                .range(start, start + page_size - 1)
                .execute()
            )
            rows = response.data or []
            clinic_ids.update(r["clinic_id"] for r in rows if r.get("clinic_id"))
            if len(rows) < page_size:
                break
            start += page_size
        return sorted(clinic_ids)

    async def count_feedback(
        self, clinic_id: Optional[str] = None, source_type: Optional[str] = None
    ) -> int:
        def query():
            q = self.client.table(FEEDBACK_ITEMS).select("id", count="exact")
            if clinic_id is not None:
                q = q.eq("clinic_id", clinic_id)
            if source_type is not None:
                q = q.eq("source_type", source_type)
            return q.limit(1).execute()

        response = await self._run(query)
        return response.count or 0

    async def fetch_feedback(
        self,
        clinic_id: Optional[str],
        source_type: Optional[str],
        since: Optional[datetime],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Newest feedback rows for one summary scope."""

        def query():
            q = self.client.table(FEEDBACK_ITEMS).select(
                "id, clinic_id, source_type, text, metadata, created_at"
            )
            if clinic_id is not None:
                q = q.eq("clinic_id", clinic_id)
            if source_type is not None:
                q = q.eq("source_type", source_type)
            if since is not None:
                q = q.gte("created_at", since.isoformat())
            return q.order("created_at", desc=True).limit(limit).execute()

        response = await self._run(query)
        return response.data or []

    async def search_feedback(
        self,
        keywords: Sequence[str],
        clinic_ids: Optional[Sequence[str]] = None,
        source_types: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
        limit: int = 30,
    ) -> List[Dict[str, Any]]:
        """Rows whose text contains any keyword, newest first.

        ``date_before`` is an exclusive upper bound on ``created_at``.
        """

        def query():
            q = self.client.table(FEEDBACK_ITEMS).select(
                "id, clinic_id, source_type, text, metadata, created_at"
            )
            if clinic_ids:
                q = q.in_("clinic_id", list(clinic_ids))
            if source_types:
                q = q.in_("source_type", list(source_types))
            if date_from:
                q = q.gte("created_at", date_from)
            if date_before:
                q = q.lt("created_at", date_before)
            if keywords:
                q = q.or_(",".join(f"text.ilike.%{k}%" for k in keywords))
            return q.order("created_at", desc=True).limit(limit).execute()

        response = await self._run(query)
        return response.data or []

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def get_summary(
        self, clinic_id: Optional[str], source_type: Optional[str], scope: str
    ) -> Optional[Dict[str, Any]]:
        def query():
            q = self.client.table(FEEDBACK_SUMMARIES).select(
                "clinic_id, source_type, scope, summary_text, "
                "items_covered_count, last_refreshed_at"
            )
            q = _match_nullable(q, "clinic_id", clinic_id)
            q = _match_nullable(q, "source_type", source_type)
            return q.eq("scope", scope).limit(1).execute()

        response = await self._run(query)
        return response.data[0] if response.data else None

    async def replace_summary(
        self,
        clinic_id: Optional[str],
        source_type: Optional[str],
        scope: str,
        summary_text: str,
        items_covered_count: int,
    ) -> None:
        """Replace the summary for one scope (delete then insert)."""

        def delete():
            q = self.client.table(FEEDBACK_SUMMARIES).delete()
            q = _match_nullable(q, "clinic_id", clinic_id)
            q = _match_nullable(q, "source_type", source_type)
            return q.eq("scope", scope).execute()

        now = _now_iso()
        row = {
            "clinic_id": clinic_id,
            "source_type": source_type,
            "scope": scope,
            "summary_text": summary_text,
            "items_covered_count": items_covered_count,
            "last_refreshed_at": now,
            "updated_at": now,
        }
        await self._run(delete)
        await self._run(lambda: self.client.table(FEEDBACK_SUMMARIES).insert(row).execute())

    # ------------------------------------------------------------------
    # Web-search insights
    # ------------------------------------------------------------------

    async def get_insights(self, scopes: Iterable[str]) -> List[Dict[str, Any]]:
        scope_list = list(scopes)
        response = await self._run(
            lambda: self.client.table(INSIGHTS)
            .select("scope, query_text, response_text, citations, metadata, last_refreshed_at")
            .in_("scope", scope_list)
            .order("last_refreshed_at", desc=True)
            .execute()
        )
        return response.data or []

    async def upsert_insight(
        self,
        scope: str,
        query_text: str,
        response_text: str,
        citations: List[Dict[str, Any]],
        metadata: Dict[str, Any],
    ) -> None:
        now = _now_iso()
        row = {
            "scope": scope,
            "query_text": query_text,
            "response_text": response_text,
            "citations": citations,
            "metadata": metadata,
            "last_refreshed_at": now,
            "updated_at": now,
        }
        await self._run(
            lambda: self.client.table(INSIGHTS).upsert(row, on_conflict="scope").execute()
        )

    # ------------------------------------------------------------------
    # Google reviews (fallback path)
    # ------------------------------------------------------------------

    def _review_query(
        self,
        select: str,
        clinic_names: Optional[Sequence[str]],
        date_from: Optional[str],
        date_before: Optional[str],
        min_rating: Optional[int],
        max_rating: Optional[int],
        exclude_rating: Optional[int],
        count: Optional[str] = None,
    ):
        q = self.client.table(GOOGLE_REVIEWS).select(select, count=count)
        if clinic_names:
            q = q.in_("clinic_name", list(clinic_names))
        if date_from:
            q = q.gte("published_at", date_from)
        if date_before:
            q = q.lt("published_at", date_before)
        if min_rating is not None:
            q = q.gte("rating", min_rating)
        if max_rating is not None:
            q = q.lte("rating", max_rating)
        if exclude_rating is not None:
            q = q.neq("rating", exclude_rating)
        return q

    async def count_reviews(
        self,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        exclude_rating: Optional[int] = None,
    ) -> int:
        response = await self._run(
            lambda: self._review_query(
                "id",
                clinic_names,
                date_from,
                date_before,
                min_rating,
                max_rating,
                exclude_rating,
                count="exact",
            )
            .limit(1)
            .execute()
        )
        return response.count or 0

    async def fetch_reviews(
        self,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        exclude_rating: Optional[int] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        response = await self._run(
            lambda: self._review_query(
                "rating, clinic_name, author_name, text, published_at",
                clinic_names,
                date_from,
                date_before,
                min_rating,
                max_rating,
                exclude_rating,
            )
            .order("published_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return response.data or []

    # ------------------------------------------------------------------
    # Articles (maintenance)
    # ------------------------------------------------------------------

    async def article_exists(self, external_id: str) -> bool:
        return await self._exists(ARTICLES, {"external_id": external_id})

    async def list_articles(
        self, columns: str, source: Optional[str] = None, limit: int = 1000
    ) -> List[Dict[str, Any]]:
        def query():
            q = self.client.table(ARTICLES).select(columns)
            if source is not None:
                q = q.eq("source", source)
            return q.order("created_at", desc=True).limit(limit).execute()

        response = await self._run(query)
        return response.data or []

    async def update_article(self, article_id: Any, fields: Dict[str, Any]) -> None:
        await self._run(
            lambda: self.client.table(ARTICLES).update(fields).eq("id", article_id).execute()
        )

    # ------------------------------------------------------------------
    # Internal reviews
    # ------------------------------------------------------------------

    async def internal_review_exists(self, review_hash: str) -> bool:
        return await self._exists(INTERNAL_REVIEWS, {"review_hash": review_hash})

    async def insert_internal_review(self, row: Dict[str, Any]) -> None:
        await self._run(lambda: self.client.table(INTERNAL_REVIEWS).insert(row).execute())

    async def latest_internal_batch_id(self) -> Optional[str]:
        response = await self._run(
            lambda: self.client.table(INTERNAL_REVIEWS)
            .select("upload_batch_id")
            .order("uploaded_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0]["upload_batch_id"] if response.data else None

    async def fetch_internal_reviews(
        self,
        batch_id: Optional[str] = None,
        since: Optional[str] = None,
        clinic_names: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_before: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        def query():
            q = self.client.table(INTERNAL_REVIEWS).select(
                "review_hash, published_at, rating, clinic_name, comment, upload_batch_id"
            )
            if batch_id is not None:
                q = q.eq("upload_batch_id", batch_id)
            if since is not None:
                q = q.gte("published_at", since)
            if clinic_names:
                q = q.in_("clinic_name", list(clinic_names))
            if date_from:
                q = q.gte("published_at", date_from)
            if date_before:
                q = q.lt("published_at", date_before)
            return q.order("published_at", desc=True).limit(limit).execute()

        response = await self._run(query)
        return response.data or []

    async def replace_internal_summary(
        self,
        scope: str,
        summary_text: str,
        reviews_covered_count: int,
        upload_batch_id: Optional[str],
    ) -> None:
        """Replace the internal summary for (scope, upload_batch_id)."""

        def delete():
            q = self.client.table(INTERNAL_REVIEW_SUMMARIES).delete().eq("scope", scope)
            return _match_nullable(q, "upload_batch_id", upload_batch_id).execute()

        now = _now_iso()
        row = {
            "scope": scope,
            "summary_text": summary_text,
            "reviews_covered_count": reviews_covered_count,
            "upload_batch_id": upload_batch_id,
            "last_refreshed_at": now,
            "updated_at": now,
        }
        await self._run(delete)
        await self._run(
            lambda: self.client.table(INTERNAL_REVIEW_SUMMARIES).insert(row).execute()
        )

    async def list_internal_summaries(self) -> List[Dict[str, Any]]:
        response = await self._run(
            lambda: self.client.table(INTERNAL_REVIEW_SUMMARIES)
            .select("scope, summary_text, reviews_covered_count, upload_batch_id")
            .order("last_refreshed_at", desc=True)
            .execute()
        )
        return response.data or []
