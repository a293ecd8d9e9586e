"""
FastAPI application for the moodpass account API.

Owns process-wide concerns: logging configuration, the database pool and
migrations (lifespan), and the last-resort mapping of domain errors that
escape a route into the standard error body.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import psycopg
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.v1 import router as v1_router
from src.api.v1.routes import error_response
from src.config.settings import get_settings
from src.domain.exceptions import ProfileStoreError, ProviderError

logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "v1",
        "description": "Account API v1 - email-link verification, login, signup, "
        "availability and password recovery",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging, open the profiles database pool and migrate it."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting moodpass (identity provider %s)", settings.supabase_url)

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        open=True,
    )
    run_migrations(pool)
    app.state.pool = pool
    logger.info("Profiles database ready (pool %d-%d)", settings.pool_min_size, settings.pool_max_size)

    yield

    pool.close()
    logger.info("Profiles database pool closed")


app = FastAPI(
    title="moodpass",
    description="Account verification and session bootstrap API - "
    "reconciles email-link proofs with local profiles and gates login on verification",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(v1_router, prefix="/v1")


@app.exception_handler(ProfileStoreError)
async def profile_store_error_handler(request: Request, exc: ProfileStoreError) -> JSONResponse:
    logger.error("Unhandled profile store error on %s (%s)", request.url.path, exc.code)
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Profile store unavailable")


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logger.warning("Unhandled identity provider error on %s (%s)", request.url.path, exc.code)
    return error_response(status.HTTP_502_BAD_GATEWAY, exc.message, error_code=exc.code)


@app.get("/health")
def health_check(request: Request):
    """
    Health check with a database ping.

    Returns 200 ``{"status": "healthy"}``, or 503 when the profiles
    database cannot be reached.
    """
    try:
        with request.app.state.pool.connection() as conn:
            conn.execute("SELECT 1")
    except psycopg.Error as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unhealthy"}
        )
    return {"status": "healthy"}
