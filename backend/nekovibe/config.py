"""
Runtime configuration for the Nekovibe backend.

All credentials and tunables are read from the environment exactly once,
at process start, into a :class:`Settings` instance that is then passed to
the store, the model client, the ingestion jobs and the services. Nothing
else in the package reads API keys from ``os.environ``.

Every collaborator is optional. A missing Supabase or OpenAI key degrades
the features that need it; jobs that cannot work without a credential raise
:class:`ConfigurationError` when they are constructed.

Environment Variables:
- SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_SERVICE_KEY)
- OPENAI_API_KEY, OPENAI_MODEL (default: gpt-4o-mini)
- GOOGLE_PLACES_API_KEY, GOOGLE_PLACES_IDS
- GNEWS_API_KEY, TAVILY_API_KEY, PERPLEXITY_API_KEY
- NEKOVIBE_SEARCH_MAX_RESULTS (default: 30)
- NEKOVIBE_REVIEW_FETCH_LIMIT (default: 300)
- NEKOVIBE_CHUNK_SIZE (default: 25)
- NEKOVIBE_SUMMARY_MAX_ITEMS (default: 500)
- NEKOVIBE_SUMMARY_BUDGET_SECONDS (default: 240)

Usage:
    from nekovibe.config import Settings

    settings = Settings.from_env()
    settings.log_configuration()
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """A required credential or setting is missing."""


# =============================================================================
# Environment helpers
# =============================================================================


def _get_optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get an optional environment variable, treating blank values as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_int_env(name: str, default: int) -> int:
    raw = _get_optional_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


# =============================================================================
# Settings
# =============================================================================


@dataclass
class Settings:
    """Configuration container built once per process."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    google_places_api_key: Optional[str] = None
    google_places_ids: Optional[str] = None
    gnews_api_key: Optional[str] = None
    tavily_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None

    search_max_results: int = 30
    review_fetch_limit: int = 300
    chunk_size: int = 25
    summary_max_items: int = 500
    summary_budget_seconds: float = 240.0

    environment: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables."""
        return cls(
            supabase_url=_get_optional_env("SUPABASE_URL"),
            supabase_key=(
                _get_optional_env("SUPABASE_SERVICE_ROLE_KEY")
                or _get_optional_env("SUPABASE_SERVICE_KEY")
            ),
            openai_api_key=_get_optional_env("OPENAI_API_KEY"),
            openai_model=_get_optional_env("OPENAI_MODEL", "gpt-4o-mini"),
            google_places_api_key=_get_optional_env("GOOGLE_PLACES_API_KEY"),
            google_places_ids=_get_optional_env("GOOGLE_PLACES_IDS"),
            gnews_api_key=_get_optional_env("GNEWS_API_KEY"),
            tavily_api_key=_get_optional_env("TAVILY_API_KEY"),
            perplexity_api_key=_get_optional_env("PERPLEXITY_API_KEY"),
            search_max_results=_get_int_env("NEKOVIBE_SEARCH_MAX_RESULTS", 30),
            review_fetch_limit=_get_int_env("NEKOVIBE_REVIEW_FETCH_LIMIT", 300),
            chunk_size=_get_int_env("NEKOVIBE_CHUNK_SIZE", 25),
            summary_max_items=_get_int_env("NEKOVIBE_SUMMARY_MAX_ITEMS", 500),
            summary_budget_seconds=float(
                _get_int_env("NEKOVIBE_SUMMARY_BUDGET_SECONDS", 240)
            ),
            environment=(_get_optional_env("ENVIRONMENT", "development") or "").lower(),
        )

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def has_openai(self) -> bool:
        return bool(self.openai_api_key)

    def require(self, *names: str) -> None:
        """Raise ConfigurationError unless every named setting is present.

        Names are attribute names (``"tavily_api_key"``); the error mentions
        the matching environment variable so operators know what to set.
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"{env_names} not configured")

    def capabilities(self) -> Dict[str, bool]:
        """Which optional collaborators are configured."""
        return {
            "database": self.has_supabase,
            "language_model": self.has_openai,
            "google_places": bool(self.google_places_api_key),
            "gnews": bool(self.gnews_api_key),
            "tavily": bool(self.tavily_api_key),
            "perplexity": bool(self.perplexity_api_key),
        }

    def log_configuration(self) -> None:
        """Log the current configuration (without sensitive data)."""
        logger.info("Nekovibe configuration:")
        logger.info(f"  Environment: {self.environment}")
        logger.info(f"  Supabase URL: {self.supabase_url or 'NOT SET'}")
        logger.info(f"  OpenAI model: {self.openai_model}")
        logger.info(
            f"  Limits: search={self.search_max_results} "
            f"reviews={self.review_fetch_limit} chunk={self.chunk_size} "
            f"summary_items={self.summary_max_items} "
            f"summary_budget={self.summary_budget_seconds:.0f}s"
        )
        for name, enabled in self.capabilities().items():
            logger.info(f"  {name}: {'configured' if enabled else 'not configured'}")
