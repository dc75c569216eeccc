"""Shared dependencies for the Nekovibe API routers.

Holds the settings, the Supabase client singleton wrapped in a
:class:`FeedbackStore`, the chat model and the rate-limiter reference, so
every router can ``from nekovibe.deps import ...`` without importing
``main``. Routers receive them through ``Depends`` so tests can swap them
with ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import HTTPException, status
from supabase import Client, create_client

from .config import Settings
from .openai_provider import LanguageModel, create_chat_model
from .security import limiter
from .storage import FeedbackStore

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings and clients (singletons)
# ---------------------------------------------------------------------------
settings = Settings.from_env()

# Missing credentials leave the client unset; endpoints that need it answer 503
supabase: Optional[Client] = None
if settings.has_supabase:
    supabase = create_client(settings.supabase_url, settings.supabase_key)

_store: Optional[FeedbackStore] = FeedbackStore(supabase) if supabase is not None else None
_model: Optional[LanguageModel] = create_chat_model(settings)

__all__ = ["get_settings", "get_store", "get_model", "limiter", "_safe_error"]


def get_settings() -> Settings:
    return settings


def get_store() -> FeedbackStore:
    """The feedback store, or 503 when Supabase is not configured."""
    if _store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase credentials not configured",
        )
    return _store


def get_model() -> Optional[LanguageModel]:
    """The chat model; None when OPENAI_API_KEY is not set."""
    return _model


# ---------------------------------------------------------------------------
# Small utility helpers
# ---------------------------------------------------------------------------


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a message without internal details."""
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."
