"""
HTTP hardening for the Nekovibe API.

- IP-based rate limiting (slowapi), with tighter limits for chat and for the
  endpoints that start ingestion or maintenance work
- Security headers plus a request id on every response, and one log line
  per request
- Request body size limit (CSV uploads included)
- Exception handlers that keep the ``{"error": ...}`` response shape and the
  CORS headers on error responses

Configuration via environment variables:
- RATE_LIMIT_PER_MINUTE: default per-IP limit (default: 100)
- RATE_LIMIT_ENABLED: set to "false" to disable rate limiting
- MAX_REQUEST_SIZE_MB: maximum request body size in MB (default: 10)
- TRUSTED_PROXY_COUNT: proxies in front of the app (default: 1)
- ENVIRONMENT: 'production' hides exception details
"""

import ipaddress
import logging
import os
import time
import uuid
from typing import Callable, Dict

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
DEFAULT_RATE_LIMIT = f"{RATE_LIMIT_PER_MINUTE}/minute"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "false"

MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "10"))
MAX_REQUEST_SIZE_BYTES = MAX_REQUEST_SIZE_MB * 1024 * 1024

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))

# Per-endpoint limits
CHAT_RATE_LIMIT = "30/minute"
JOB_RATE_LIMIT = "5/minute"


# =============================================================================
# Client IP and rate limiter
# =============================================================================


def _is_valid_ip(ip_str: str) -> bool:
    if not ip_str or len(ip_str) > 45:
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Client IP for rate limiting and logs.

    X-Forwarded-For is read right to left: the last TRUSTED_PROXY_COUNT
    entries belong to our proxies and the one before them is the client.
    Anything that is not a valid IP is ignored.
    """
    direct_ip = request.client.host if request.client else None

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > TRUSTED_PROXY_COUNT:
                client_ip = ips[-(TRUSTED_PROXY_COUNT + 1)]
            else:
                client_ip = ips[0]
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {client_ip[:50]!r}")

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning(f"Invalid X-Real-IP header: {real_ip[:50]!r}")

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)


def rate_limit_chat():
    """Limit for the chat endpoints, which call the language model."""
    return limiter.limit(CHAT_RATE_LIMIT)


def rate_limit_jobs():
    """Limit for endpoints that start ingestion, summary or maintenance runs."""
    return limiter.limit(JOB_RATE_LIMIT)


# =============================================================================
# Middleware
# =============================================================================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers and X-Request-ID, and logs each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store"

        logger.info(
            f"{request.method} {request.url.path} status={response.status_code} "
            f"duration={time.time() - started:.3f}s request_id={request_id} "
            f"client_ip={get_client_ip(request)}"
        )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies larger than MAX_REQUEST_SIZE_MB."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400, content={"error": "Invalid Content-Length header"}
                )
            if size > MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={
                        "error": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_MB}MB."
                    },
                )
        return await call_next(request)


# =============================================================================
# Exception handlers
# =============================================================================


def _error_headers(request: Request, allowed_origins: list[str]) -> Dict[str, str]:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    headers = {"X-Request-ID": request_id}
    origin = request.headers.get("origin", "")
    if origin and (origin in allowed_origins or "*" in allowed_origins):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_unhandled_exception_handler(allowed_origins: list[str]) -> Callable:
    """500 with the chat-style ``{"error", "details"}`` body; details hidden in production."""

    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        headers = _error_headers(request, allowed_origins)
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc} "
            f"request_id={headers['X-Request-ID']} path={request.url.path} "
            f"client_ip={get_client_ip(request)}",
            exc_info=True,
        )
        details = (
            "An internal server error occurred. Please try again later."
            if IS_PRODUCTION
            else f"{type(exc).__name__}: {exc}"
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Unexpected error", "details": details},
            headers=headers,
        )

    return unhandled_exception_handler


def create_rate_limit_exceeded_handler(allowed_origins: list[str]) -> Callable:
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _error_headers(request, allowed_origins)
        headers["Retry-After"] = "60"
        logger.warning(
            f"Rate limit exceeded: client_ip={get_client_ip(request)} path={request.url.path}"
        )
        return JSONResponse(
            status_code=429,
            content={"error": "Rate limit exceeded. Please slow down your requests."},
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(allowed_origins: list[str]) -> Callable:
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=_error_headers(request, allowed_origins),
        )

    return http_exception_handler


def create_validation_exception_handler(allowed_origins: list[str]) -> Callable:
    """Malformed request bodies answer 400 with the first validation message."""

    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        return JSONResponse(
            status_code=400,
            content={
                "error": message,
                "details": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
                ],
            },
            headers=_error_headers(request, allowed_origins),
        )

    return validation_exception_handler


def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """Install the limiter, the middleware and the exception handlers."""
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(RateLimitExceeded, create_rate_limit_exceeded_handler(allowed_origins))
    app.add_exception_handler(RequestValidationError, create_validation_exception_handler(allowed_origins))
    app.add_exception_handler(HTTPException, create_http_exception_handler(allowed_origins))
    app.add_exception_handler(Exception, create_unhandled_exception_handler(allowed_origins))

    logger.info(
        f"Security middleware configured: rate_limit={DEFAULT_RATE_LIMIT} "
        f"(enabled={RATE_LIMIT_ENABLED}), max_request_size={MAX_REQUEST_SIZE_MB}MB, "
        f"environment={ENVIRONMENT}"
    )
