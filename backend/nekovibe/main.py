"""
Nekovibe API - FastAPI backend for Neko Health feedback intelligence
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from .deps import get_settings
from .routers import chat, health, ingestion, internal_reviews, maintenance, search, summaries
from .security import setup_security

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the configuration on startup."""
    get_settings().log_configuration()
    logger.info("Nekovibe API started")
    yield
    logger.info("Nekovibe API shutdown complete")


app = FastAPI(
    title="Nekovibe API",
    description="Customer feedback intelligence for Neko Health clinics",
    version="1.0.0",
    lifespan=lifespan,
)

# =============================================================================
# CORS Configuration
# =============================================================================
# Production accepts HTTPS origins only; development allows localhost.

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
DEFAULT_PRODUCTION_ORIGIN = "https://nekovibe.vercel.app"

if ENVIRONMENT == "production":
    ALLOWED_ORIGINS = []
    for origin in os.getenv("ALLOWED_ORIGINS", DEFAULT_PRODUCTION_ORIGIN).split(","):
        origin = origin.strip()
        if not origin:
            continue
        if not origin.startswith("https://"):
            logger.warning(f"[CORS] Rejecting non-HTTPS origin in production: {origin}")
            continue
        if "localhost" in origin or "127.0.0.1" in origin:
            logger.warning(f"[CORS] Rejecting localhost origin in production: {origin}")
            continue
        ALLOWED_ORIGINS.append(origin)

    if not ALLOWED_ORIGINS:
        ALLOWED_ORIGINS = [DEFAULT_PRODUCTION_ORIGIN]
        logger.warning("[CORS] No valid origins configured, using default production origin")
else:
    default_origins = "http://localhost:3000,http://localhost:5173"
    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv("ALLOWED_ORIGINS", default_origins).split(",")
        if origin.strip()
    ]

if not ALLOWED_ORIGINS:
    raise ValueError("CORS configuration error: No valid allowed origins configured")

logger.info(f"[CORS] Environment: {ENVIRONMENT}")
logger.info(f"[CORS] Allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# Must run after the CORS middleware is added
setup_security(app, ALLOWED_ORIGINS)

# =============================================================================
# Routers
# =============================================================================

app.include_router(health.router)
app.include_router(chat.router)
app.include_router(internal_reviews.router)
app.include_router(summaries.router)
app.include_router(ingestion.router)
app.include_router(maintenance.router)
app.include_router(search.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
