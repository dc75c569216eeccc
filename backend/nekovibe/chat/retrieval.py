"""
Context retrieval for the feedback chat.

Three kinds of context feed the prompt:

- cached summaries for the detected scope (global and per clinic, all
  sources and per source, across the four time windows);
- keyword-matched feedback snippets, newest first;
- cached web-search insights, when article sources are selected.

Every lookup degrades to an empty result on a store error so a broken table
never fails the whole answer.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..normalizers.text_utils import parse_datetime, truncate
from ..records import SUMMARY_SCOPES
from ..storage import FeedbackStore

logger = logging.getLogger(__name__)

MAX_SUMMARIES = 6
SNIPPET_CHARS = 300

INSIGHT_LABELS = {
    "comprehensive": "[Web Search: Comprehensive Market Analysis]",
    "last_7_days": "[Web Search: Latest 7 Days News & Trends]",
}

INSIGHTS_PENDING_TEXT = (
    "Web search insights are currently unavailable. The system is configured to "
    "fetch comprehensive market analysis and recent news trends, but data "
    "collection is pending. Once available, this will include web-wide analysis "
    "of Neko Health mentions, sentiment, and trends."
)

RELEVANT_MARK = "[RELEVANT TO QUESTION]"


# ============================================================================
# Summaries
# ============================================================================


def summary_lookups(
    clinics: Sequence[str], source_type: Optional[str]
) -> List[Tuple[str, Optional[str], Optional[str], str]]:
    """(label, clinic_id, source_type, scope) for every summary worth reading, in priority order."""
    lookups = []
    for scope in SUMMARY_SCOPES:
        lookups.append((f"[Global, All Sources, {scope}]", None, None, scope))
    if source_type:
        for scope in SUMMARY_SCOPES:
            lookups.append((f"[Global, {source_type}, {scope}]", None, source_type, scope))
    for clinic in clinics:
        for scope in SUMMARY_SCOPES:
            lookups.append((f"[Clinic: {clinic}, All Sources, {scope}]", clinic, None, scope))
        if source_type:
            for scope in SUMMARY_SCOPES:
                lookups.append(
                    (f"[Clinic: {clinic}, {source_type}, {scope}]", clinic, source_type, scope)
                )
    return lookups


async def fetch_summaries(
    store: FeedbackStore,
    clinics: Sequence[str],
    source_type: Optional[str],
    limit: int = MAX_SUMMARIES,
) -> List[Dict[str, Any]]:
    """Existing summaries for the scope, labelled, capped at ``limit``.

    Clinic summaries take their slots first and global summaries fill the
    rest, so a clinic question keeps its clinic context however many global
    summaries exist. The result stays in lookup order.
    """
    lookups = summary_lookups(clinics, source_type)

    async def lookup(clinic_id, stype, scope):
        try:
            return await store.get_summary(clinic_id, stype, scope)
        except Exception as e:
            logger.warning(f"Summary lookup failed for {clinic_id}/{stype}/{scope}: {e}")
            return None

    rows = await asyncio.gather(*(lookup(c, s, scope) for _, c, s, scope in lookups))

    found = []
    for (label, clinic_id, _, _), row in zip(lookups, rows):
        if row and row.get("summary_text"):
            found.append((clinic_id is not None, {"label": label, **row}))

    clinic_count = min(limit, sum(1 for is_clinic, _ in found if is_clinic))
    global_slots = limit - clinic_count
    summaries = []
    for is_clinic, summary in found:
        if is_clinic:
            if clinic_count:
                summaries.append(summary)
                clinic_count -= 1
        elif global_slots:
            summaries.append(summary)
            global_slots -= 1
    return summaries


# ============================================================================
# Snippets
# ============================================================================


def to_snippet(row: Dict[str, Any]) -> Dict[str, Any]:
    metadata = row.get("metadata") or {}
    created = parse_datetime(row.get("created_at"))
    return {
        "id": row.get("id"),
        "clinic_id": row.get("clinic_id"),
        "source_type": row.get("source_type"),
        "text": truncate(row.get("text") or "", SNIPPET_CHARS),
        "rating": metadata.get("rating"),
        "author": metadata.get("author_name") or metadata.get("author"),
        "date": created.date().isoformat() if created else None,
    }


async def search_snippets(
    store: FeedbackStore,
    keywords: Sequence[str],
    clinics: Sequence[str] = (),
    source_type: Optional[str] = None,
    date_from: Optional[str] = None,
    date_before: Optional[str] = None,
    limit: int = 30,
) -> List[Dict[str, Any]]:
    """Feedback items containing any keyword; nothing to search without keywords."""
    if not keywords:
        return []
    try:
        rows = await store.search_feedback(
            keywords,
            clinic_ids=clinics or None,
            source_types=[source_type] if source_type else None,
            date_from=date_from,
            date_before=date_before,
            limit=limit,
        )
    except Exception as e:
        logger.error(f"Snippet search failed: {e}")
        return []
    return [to_snippet(row) for row in rows]


# ============================================================================
# Web-search insights
# ============================================================================


async def fetch_web_insights(store: FeedbackStore) -> List[Dict[str, Any]]:
    """Stored insights for the two chat scopes, labelled. Empty when none exist."""
    try:
        rows = await store.get_insights(INSIGHT_LABELS.keys())
    except Exception as e:
        logger.warning(f"Insight lookup failed: {e}")
        return []

    by_scope = {}
    for row in rows:
        by_scope.setdefault(row.get("scope"), row)

    return [
        {"label": label, **by_scope[scope]}
        for scope, label in INSIGHT_LABELS.items()
        if scope in by_scope
    ]


def pending_insight() -> Dict[str, Any]:
    return {
        "label": "[Web Search: Market Intelligence]",
        "scope": "unavailable",
        "response_text": INSIGHTS_PENDING_TEXT,
        "citations": [],
    }


def mark_relevant(insights: List[Dict[str, Any]], keywords: Sequence[str]) -> List[Dict[str, Any]]:
    """Tag insights whose text mentions any question keyword."""
    if not keywords:
        return insights
    marked = []
    for insight in insights:
        text = (insight.get("response_text") or "").lower()
        if any(k.lower() in text for k in keywords):
            insight = {**insight, "label": f"{insight['label']} {RELEVANT_MARK}"}
        marked.append(insight)
    return marked


def format_insights(insights: Sequence[Dict[str, Any]]) -> str:
    return "\n\n---\n\n".join(
        f"{p['label']}\n{p.get('response_text') or ''}\n\n"
        f"Citations: {json.dumps(p.get('citations') or [], default=str)}"
        for p in insights
    )
