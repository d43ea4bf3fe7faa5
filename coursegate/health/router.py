"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from coursegate.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - ready once the engine services are wired to storage."""
    settings = get_settings()
    state = request.app.state
    checks: dict[str, Any] = {
        "cassandra": getattr(state, "cassandra_session", None) is not None,
        "services": all(
            getattr(state, name, None) is not None
            for name in (
                "progress_service",
                "assessment_service",
                "certificate_service",
                "access_guard",
            )
        ),
        "redis": getattr(state, "redis", None) is not None,
    }
    # Redis is optional
    ready = checks["cassandra"] and checks["services"]
    code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return ORJSONResponse(
        status_code=code,
        content={
            "status": "ready" if ready else "not_ready",
            "environment": settings.environment,
            "checks": checks,
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
