"""FastAPI server for Daper"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from daper.api.middleware.rate_limit import RateLimitMiddleware
from daper.api.middleware.security_headers import SecurityHeadersMiddleware
from daper.api.routes.health import router as health_router
from daper.api.routes.ideas import router as ideas_router
from daper.api.routes.mindmap import router as mindmap_router
from daper.api.routes.users import router as users_router
from daper.config import APP_VERSION, FRONTEND_URL, RATE_LIMIT_RPH, RATE_LIMIT_RPM, is_development
from daper.infrastructure import submission_lock
from daper.infrastructure.database import init_database
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter, log_event
from daper.utils.error_sanitizer import GENERIC_MESSAGES, get_safe_error_detail

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize the schema and clear stale submission locks before serving."""
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e

    try:
        submission_lock.purge_expired()
    except sqlite3.Error as e:
        logger.warning("Could not purge stale submission locks: %s", e)

    log_event("api.startup", service="daper-api", version=APP_VERSION)
    yield


app = FastAPI(title="Daper API", version=APP_VERSION, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer malformed requests with field names only, never the validation rules."""
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for errors that escaped a route: log them, answer with a generic 500."""
    counter("api.unhandled_errors")
    detail = get_safe_error_detail(exc, 500, context=GENERIC_MESSAGES[500])
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})


# CORS - the web frontend only
ALLOWED_ORIGINS = [FRONTEND_URL]

if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
)

app.add_middleware(SecurityHeadersMiddleware)

app.include_router(health_router)
app.include_router(users_router)
app.include_router(ideas_router)
app.include_router(mindmap_router)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Daper API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "users": "/api/users/me",
            "usage": "/api/users/me/usage",
            "ideas": "/api/ideas",
            "favorites": "/api/ideas/favorites",
            "shared": "/api/shared/{share_id}",
            "mindmap": "/api/ideas/{idea_id}/mindmap",
        },
    }
