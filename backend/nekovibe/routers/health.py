"""Health-check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..config import Settings
from ..deps import get_settings
from ..openai_provider import get_provider_info

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "Nekovibe API is running"}


@router.get("/api/v1/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Detailed health check listing configured and degraded capabilities."""
    configured = settings.capabilities()
    capabilities = [name for name, enabled in configured.items() if enabled]
    degraded = [name for name, enabled in configured.items() if not enabled]

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "configured" if settings.has_supabase else "unavailable",
            "ai": get_provider_info(settings),
        },
        "capabilities": capabilities,
        "degraded": degraded if degraded else None,
        "mode": "full" if not degraded else "degraded",
    }
