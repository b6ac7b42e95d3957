"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter

from src.core.config import get_eligibility_settings


router = APIRouter(tags=["Health"])

SERVICE_NAME = "x12-eligibility-api"


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """
    Detailed health check with configuration status.

    The clearinghouse is not contacted; a missing credential pair marks the
    gateway as unconfigured while decoding stays available.
    """
    settings = get_eligibility_settings()
    gateway_ready = settings.has_credentials

    return {
        "status": "healthy" if gateway_ready else "degraded",
        "service": SERVICE_NAME,
        "checks": {
            "decoder": "healthy",
            "core2_gateway": "configured" if gateway_ready else "unconfigured",
        },
    }
