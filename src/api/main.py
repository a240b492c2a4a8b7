"""
FastAPI Main Application
Entry point for the API server
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.routes import check_in, family, health, members, membership, waivers
from src.core.config import get_gym_settings
from src.db.connection import close_db_connection, init_models
from src.utils.errors import GymEngineError
from src.utils.logging import get_logger, setup_logging

settings = get_gym_settings()

# Setup logging
setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.JSON_LOGS or settings.is_production,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]  # noqa: ARG001
    """Application lifespan manager."""
    # Startup
    logger.info(
        f"Starting application in {settings.ENVIRONMENT} mode "
        f"({settings.INTEGRATION_MODE.value} integrations, tz={settings.FACILITY_TIMEZONE})"
    )
    if not settings.is_demo_mode:
        await init_models()

    yield

    # Shutdown
    logger.info("Shutting down application")
    if not settings.is_demo_mode:
        await close_db_connection()
        logger.info("Database connections closed")


app = FastAPI(
    title="Gym Compliance Engine API",
    description="Waiver validity, check-in eligibility, family billing and subscription lifecycle",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,  # Disable docs in production
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)


@app.exception_handler(GymEngineError)
async def engine_error_handler(request: Request, exc: GymEngineError) -> JSONResponse:
    """Map typed engine failures to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.reason}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.reason}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(health.router)
app.include_router(check_in.router)
app.include_router(members.router)
app.include_router(waivers.router)
app.include_router(family.router)
app.include_router(membership.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Gym Compliance Engine API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }
