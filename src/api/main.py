"""
FastAPI Main Application
Entry point for the eligibility API server
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.api.routes import eligibility, health
from src.core.config import get_eligibility_settings
from src.utils.logging import get_logger, setup_logging

settings = get_eligibility_settings()

setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.JSON_LOGS,
)

logger = get_logger(__name__)

API_TITLE = "X12 Eligibility API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]  # noqa: ARG001
    """Application lifespan manager."""
    logger.info(f"Starting {API_TITLE} (CORE II endpoint: {settings.ENDPOINT})")
    if not settings.has_credentials:
        logger.warning("CORE II credentials not configured; /check requests will fail")

    yield

    logger.info("Shutting down application")


app = FastAPI(
    title=API_TITLE,
    description="Real-time X12 270/271 eligibility checks and 271 decoding",
    version=API_VERSION,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(eligibility.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "docs": "/docs",
    }
