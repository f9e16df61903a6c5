"""Dependency injection for API endpoints."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from deployer.config import settings
from deployer.core.engine import PipelineEngine, get_engine
from deployer.core.store import DeploymentStore, get_deployment_store
from deployer.models.deployment import Deployment
from deployer.utils.logging import get_logger

logger = get_logger(__name__)


async def get_pipeline_engine() -> PipelineEngine:
    """Get the pipeline engine."""
    return get_engine()


async def get_store() -> DeploymentStore:
    """Get the deployment store."""
    return get_deployment_store()


async def require_api_key(
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless it carries the configured API key."""
    expected = settings.deploy_api_key
    if not expected:
        return
    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        logger.warning("auth.rejected", reason="missing or invalid X-API-Key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def get_deployment_by_id(
    deployment_id: str,
    store: Annotated[DeploymentStore, Depends(get_store)],
) -> Deployment:
    """Get a deployment by ID or raise 404."""
    deployment = store.get(deployment_id)
    if not deployment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deployment not found: {deployment_id}",
        )
    return deployment


# Type aliases for cleaner signatures
EngineDep = Annotated[PipelineEngine, Depends(get_pipeline_engine)]
StoreDep = Annotated[DeploymentStore, Depends(get_store)]
DeploymentDep = Annotated[Deployment, Depends(get_deployment_by_id)]
