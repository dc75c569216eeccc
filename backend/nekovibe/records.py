"""
Record types shared by the normalizers, the store adapter and the jobs.

Rows are plain dicts on the wire (Supabase returns and accepts dicts); these
dataclasses are the validated in-process shapes with ``to_row()`` helpers
producing the column mapping for each table.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# ============================================================================
# Source types and scopes
# ============================================================================

GOOGLE_REVIEW = "google_review"
PRESS_ARTICLE = "press_article"
SOCIAL_POST = "social_post"
BLOG_POST = "blog_post"

SOURCE_TYPES = (GOOGLE_REVIEW, PRESS_ARTICLE, SOCIAL_POST, BLOG_POST)

SUMMARY_SCOPES = ("all_time", "last_90_days", "last_30_days", "last_7_days")

# Days covered by each time-windowed summary scope
SCOPE_DAYS: Dict[str, int] = {
    "last_90_days": 90,
    "last_30_days": 30,
    "last_7_days": 7,
}

UNKNOWN_CLINIC = "Unknown Clinic"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============================================================================
# Normalized records
# ============================================================================


@dataclass
class GoogleReview:
    """A validated Google Places review."""

    external_id: str
    clinic_place_id: str
    clinic_name: str
    author_name: str
    rating: int
    text: str
    published_at: datetime
    author_url: Optional[str] = None
    response_text: Optional[str] = None
    response_published_at: Optional[datetime] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "clinic_place_id": self.clinic_place_id,
            "clinic_name": self.clinic_name,
            "author_name": self.author_name,
            "author_url": self.author_url,
            "rating": self.rating,
            "text": self.text,
            "published_at": _iso(self.published_at),
            "response_text": self.response_text,
            "response_published_at": _iso(self.response_published_at),
            "raw_data": self.raw_data,
        }


@dataclass
class Article:
    """A validated article, press mention or LinkedIn post. The URL identifies it."""

    external_id: str
    source: str
    title: str
    url: str
    content: str
    description: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    raw_html: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "source": self.source,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "author": self.author,
            "published_at": _iso(self.published_at),
            "content": self.content,
            "raw_html": self.raw_html,
            "metadata": self.metadata,
        }


@dataclass
class FeedbackItem:
    """Unified feedback row mirrored from reviews and articles."""

    clinic_id: str
    source_type: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def external_id(self) -> Optional[str]:
        return self.metadata.get("external_id")

    def to_row(self) -> Dict[str, Any]:
        return {
            "clinic_id": self.clinic_id,
            "source_type": self.source_type,
            "text": self.text,
            "metadata": self.metadata,
        }


@dataclass
class InternalReview:
    """A row parsed from an uploaded internal-review CSV."""

    review_hash: str
    published_at: datetime
    rating: int
    clinic_name: str
    comment: str

    def to_row(self, upload_batch_id: str) -> Dict[str, Any]:
        return {
            "review_hash": self.review_hash,
            "published_at": self.published_at.isoformat(),
            "rating": self.rating,
            "clinic_name": self.clinic_name,
            "comment": self.comment,
            "upload_batch_id": upload_batch_id,
        }


# ============================================================================
# Operation results
# ============================================================================


@dataclass
class StoreResult:
    """Outcome of a store-if-absent write."""

    stored: bool
    error: Optional[str] = None


@dataclass
class IngestionError:
    item: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"item": self.item, "error": self.error}


@dataclass
class IngestionResult:
    """Counts reported by an ingestion job run."""

    added: int = 0
    skipped: int = 0
    total_found: int = 0
    errors: List[IngestionError] = field(default_factory=list)

    def record(self, item: str, result: StoreResult) -> None:
        """Fold one store outcome into the counters."""
        if result.stored:
            self.added += 1
        elif result.error:
            self.errors.append(IngestionError(item=item, error=result.error))
        else:
            self.skipped += 1

    def fail(self, item: str, error: str) -> None:
        self.errors.append(IngestionError(item=item, error=error))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "added": self.added,
            "skipped": self.skipped,
            "total_found": self.total_found,
            "errors": [e.to_dict() for e in self.errors],
        }
