"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from deployer import __version__
from deployer.api.deps import EngineDep
from deployer.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    deployment_in_progress: bool
    current_deployment: str | None = None
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(engine: EngineDep) -> HealthResponse:
    """Check API health and whether a deployment is running."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        deployment_in_progress=engine.gate.locked,
        current_deployment=engine.gate.holder,
        timestamp=datetime.now(timezone.utc),
    )
