# =============================================================================
# Health Check Router
# =============================================================================
# Endpoints for container health checks and readiness probes.
# =============================================================================

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.auth.dependencies import get_current_caller
from app.auth.providers import Caller
from app.services.job_service import get_job_service

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadyResponse(BaseModel):
    """Readiness check response model."""

    status: str
    services: dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    No authentication required for container health checks.
    """
    from app import __version__

    return HealthResponse(status="healthy", version=__version__)


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check() -> ReadyResponse:
    """
    Readiness check endpoint; verifies MongoDB connectivity.
    """
    try:
        get_job_service().ping()
        mongodb = "ok"
    except Exception as exc:
        mongodb = f"error: {exc}"

    return ReadyResponse(
        status="ready" if mongodb == "ok" else "degraded",
        services={"mongodb": mongodb},
    )


@router.get("/whoami")
async def whoami(caller: Caller = Depends(get_current_caller)) -> dict:
    """Return the caller identity resolved from the gateway headers."""
    return {
        "tenant_id": caller.tenant_id,
        "user_id": caller.user_id,
        "role": caller.role,
        "cross_tenant": caller.is_cross_tenant,
    }
