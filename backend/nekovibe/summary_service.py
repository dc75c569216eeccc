"""
Precomputed feedback summaries.

A summary covers one (clinic | all, source type | all, scope) combination and
is regenerated by the language model from the newest feedback items in that
window. Summaries younger than 24 hours are considered fresh and skipped
unless a refresh is forced.

The batch driver walks every combination under a wall-clock budget. When the
budget runs out it returns a partial report listing the clinics it did not
reach. Because fresh summaries are skipped, re-invoking the batch with the
same parameters picks up where the previous run stopped.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .normalizers.text_utils import parse_datetime
from .openai_provider import LanguageModel
from .records import SCOPE_DAYS, SOURCE_TYPES, SUMMARY_SCOPES
from .storage import FeedbackStore

logger = logging.getLogger(__name__)

FRESHNESS = timedelta(hours=24)
EMPTY_SUMMARY_TEXT = "No feedback items found for this combination."

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert analyst summarizing user feedback. Be objective, balanced, "
    "and focus on patterns and concrete details from the data."
)

SUMMARY_PROMPT = """You are analyzing user feedback about Neko Health (health check clinics). Below are {count} feedback items (reviews, articles, or social posts).

Your task: Create a comprehensive summary that captures:
- Recurring themes and patterns
- Strengths and positive aspects mentioned
- Weaknesses, issues, or concerns raised
- Specific "wow" moments or standout experiences
- Any notable trends or changes over time
- Concrete examples when relevant

Important:
- This is a summary of USER FEEDBACK, not marketing copy
- Be honest and balanced
- Quantify when possible (e.g., "many users mention...", "several reviews note...")
- Highlight both positive and negative feedback
- If there are conflicting views, mention both sides

Feedback items:
{items}

Provide a clear, structured summary (2-4 paragraphs) that would help someone understand what people are saying about Neko Health based on this data."""


@dataclass
class SummaryResult:
    clinic_id: Optional[str]
    source_type: Optional[str]
    scope: str
    status: str  # success | skipped | empty | error
    items_count: int = 0
    summary: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "clinic_id": self.clinic_id,
            "source_type": self.source_type,
            "scope": self.scope,
            "status": self.status,
        }
        if self.status in ("success", "empty"):
            data["items_count"] = self.items_count
        if self.summary is not None:
            data["summary"] = self.summary
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BatchReport:
    """Outcome of one batch run; ``partial`` when the budget ran out."""

    results: List[SummaryResult] = field(default_factory=list)
    processed: int = 0
    total: int = 0
    remaining_clinics: List[str] = field(default_factory=list)
    current_clinic: Optional[str] = None
    partial: bool = False

    @property
    def message(self) -> str:
        if self.partial:
            return "Partial completion - approaching timeout"
        return "Generated all summaries"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "message": self.message,
            "results": [r.to_dict() for r in self.results],
        }
        if self.partial:
            data.update(
                {
                    "processed": self.processed,
                    "total": self.total,
                    "remaining_clinics": self.remaining_clinics,
                }
            )
            if self.current_clinic:
                data["current_clinic"] = self.current_clinic
        else:
            data.update(
                {
                    "total": len(self.results),
                    "processed_clinics": self.processed,
                    "total_clinics": self.total,
                }
            )
        return data


class _BudgetExhausted(Exception):
    pass


def format_feedback_items(items: List[Dict[str, Any]], clinic_id: Optional[str]) -> str:
    """Number each item and prefix it with rating, author, date and clinic."""
    blocks = []
    for idx, item in enumerate(items, start=1):
        metadata = item.get("metadata") or {}
        lines = []
        if metadata.get("rating"):
            lines.append(f"Rating: {metadata['rating']}/5")
        author = metadata.get("author_name") or metadata.get("author")
        if author:
            lines.append(f"Author: {author}")
        created = parse_datetime(item.get("created_at"))
        if created:
            lines.append(f"Date: {created.date().isoformat()}")
        clinic = metadata.get("clinic_name") or clinic_id
        if clinic:
            lines.append(f"Clinic: {clinic}")
        lines.append(f"Content: {(item.get('text') or '')[:800]}")
        blocks.append(f"[{idx}] " + "\n".join(lines))
    return "\n\n".join(blocks)


class SummaryGenerator:
    """Generate and cache feedback summaries."""

    def __init__(
        self,
        store: FeedbackStore,
        model: Optional[LanguageModel],
        max_items: int = 500,
        budget_seconds: float = 240.0,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.model = model
        self.max_items = max_items
        self.budget_seconds = budget_seconds
        self.clock = clock
        self.now = now

    # ------------------------------------------------------------------
    # Single summary
    # ------------------------------------------------------------------

    def _is_fresh(self, existing: Optional[Dict[str, Any]]) -> bool:
        if not existing:
            return False
        refreshed = parse_datetime(existing.get("last_refreshed_at"))
        return refreshed is not None and self.now() - refreshed < FRESHNESS

    def _cutoff(self, scope: str) -> Optional[datetime]:
        days = SCOPE_DAYS.get(scope)
        return self.now() - timedelta(days=days) if days else None

    async def generate_summary(
        self,
        clinic_id: Optional[str] = None,
        source_type: Optional[str] = None,
        scope: str = "all_time",
        force_refresh: bool = False,
    ) -> SummaryResult:
        def result(status: str, **kwargs) -> SummaryResult:
            return SummaryResult(clinic_id, source_type, scope, status, **kwargs)

        if scope not in SUMMARY_SCOPES:
            return result("error", error=f"Unknown scope: {scope}")

        if not force_refresh:
            try:
                existing = await self.store.get_summary(clinic_id, source_type, scope)
            except Exception as e:
                logger.warning(f"Could not read existing summary: {e}")
                existing = None
            if self._is_fresh(existing):
                return result(
                    "skipped",
                    reason="Summary is recent (less than 24 hours old)",
                    summary=existing.get("summary_text"),
                )

        try:
            items = await self.store.fetch_feedback(
                clinic_id, source_type, self._cutoff(scope), self.max_items
            )
        except Exception as e:
            logger.error(f"Failed to fetch items for {clinic_id}/{source_type}/{scope}: {e}")
            return result("error", error=str(e))

        if not items:
            await self.store.replace_summary(clinic_id, source_type, scope, EMPTY_SUMMARY_TEXT, 0)
            return result("empty", items_count=0, summary=EMPTY_SUMMARY_TEXT)

        summary_text = None
        if self.model is not None:
            prompt = SUMMARY_PROMPT.format(
                count=len(items), items=format_feedback_items(items, clinic_id)
            )
            summary_text = await self.model.complete(
                SUMMARY_SYSTEM_PROMPT, prompt, temperature=0.2
            )
        if not summary_text:
            return result("error", error="Failed to generate summary from OpenAI")

        await self.store.replace_summary(clinic_id, source_type, scope, summary_text, len(items))
        return result("success", items_count=len(items), summary=summary_text)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def _generate_safely(
        self,
        clinic_id: Optional[str],
        source_type: Optional[str],
        scope: str,
        force_refresh: bool,
    ) -> SummaryResult:
        try:
            return await self.generate_summary(clinic_id, source_type, scope, force_refresh)
        except Exception as e:
            logger.error(f"Failed summary for {clinic_id} ({source_type}, {scope}): {e}")
            return SummaryResult(clinic_id, source_type, scope, "error", error=str(e))

    async def run_batch(
        self,
        skip_global: bool = False,
        clinic_only: Optional[str] = None,
        force_refresh: bool = False,
    ) -> BatchReport:
        """Generate every summary combination within the time budget."""
        started = self.clock()

        def check_budget() -> None:
            if self.clock() - started > self.budget_seconds:
                raise _BudgetExhausted()

        clinics = await self.store.distinct_clinic_ids(SOURCE_TYPES)
        if clinic_only:
            clinics = [c for c in clinics if c == clinic_only]

        report = BatchReport(total=len(clinics))
        current: Optional[str] = None
        try:
            if not skip_global:
                for scope in SUMMARY_SCOPES:
                    check_budget()
                    report.results.append(
                        await self._generate_safely(None, None, scope, force_refresh)
                    )

            for clinic_id in clinics:
                check_budget()
                current = clinic_id
                await self._run_clinic(clinic_id, force_refresh, report, check_budget)
                report.processed += 1
                current = None
        except _BudgetExhausted:
            logger.warning(
                f"Summary budget exhausted: processed {report.processed}/{report.total} clinics"
            )
            report.partial = True
            report.current_clinic = current
            report.remaining_clinics = clinics[report.processed:]

        return report

    async def _run_clinic(
        self,
        clinic_id: str,
        force_refresh: bool,
        report: BatchReport,
        check_budget: Callable[[], None],
    ) -> None:
        try:
            count = await self.store.count_feedback(clinic_id)
        except Exception as e:
            logger.error(f"Error checking count for {clinic_id}: {e}")
            return
        if count == 0:
            logger.warning(f"Skipping {clinic_id} - no items found")
            return

        for scope in SUMMARY_SCOPES:
            check_budget()
            report.results.append(
                await self._generate_safely(clinic_id, None, scope, force_refresh)
            )

        for source_type in SOURCE_TYPES:
            check_budget()
            try:
                source_count = await self.store.count_feedback(clinic_id, source_type)
            except Exception as e:
                logger.error(f"Error checking {source_type} count for {clinic_id}: {e}")
                continue
            if source_count == 0:
                continue
            for scope in SUMMARY_SCOPES:
                check_budget()
                report.results.append(
                    await self._generate_safely(clinic_id, source_type, scope, force_refresh)
                )
