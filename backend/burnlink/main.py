from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import inspect

from burnlink.config import settings
from burnlink.database import engine
from burnlink.errors import RateLimited, SecretError, StoreError
from burnlink.logging_config import get_logger, setup_logging
from burnlink.middleware.logging import LoggingMiddleware, loggable_path
from burnlink.middleware.rate_limit import build_attempt_limiter, limiter
from burnlink.routers import secrets
from burnlink.scheduler import shutdown_scheduler, start_scheduler
from burnlink.services.crypto_utils import ServerCipher

# Database tables are managed by Alembic migrations
# Run: alembic upgrade head (from backend/)

REQUIRED_TABLES = {"secrets"}

logger = get_logger("burnlink.main")


def check_database_tables() -> None:
    """Refuse to start when migrations have not been applied."""
    existing = set(inspect(engine).get_table_names())
    missing = REQUIRED_TABLES - existing
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(sorted(missing))}. "
            "Run migrations first: cd backend && alembic upgrade head"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, wire per-app state, start/stop the reaper."""
    setup_logging()
    check_database_tables()

    # Fails fast if ENCRYPTION_KEY is missing or malformed
    app.state.cipher = ServerCipher.from_settings(settings)
    app.state.attempt_limiter = build_attempt_limiter(settings)

    if settings.scheduler_enabled:
        start_scheduler(app.state.attempt_limiter)
    logger.info("app_started", scheduler_enabled=settings.scheduler_enabled)
    yield
    if settings.scheduler_enabled:
        shutdown_scheduler()


app = FastAPI(
    title="burnlink",
    description="Self-destructing, optionally password-protected secret links",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(SecretError)
async def secret_error_handler(request: Request, exc: SecretError) -> JSONResponse:
    headers = {}
    if isinstance(exc, StoreError):
        logger.error("store_error", detail=exc.detail, path=loggable_path(request.url.path))
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = structlog.contextvars.get_contextvars().get("correlation_id")
    headers = {"X-Correlation-ID": correlation_id} if correlation_id else {}
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
        headers=headers,
    )


app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(secrets.router, prefix="/api/v1", tags=["secrets"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
