"""Deployment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from deployer.api.deps import DeploymentDep, EngineDep, StoreDep, require_api_key
from deployer.models.deployment import (
    DeploymentCreate,
    DeploymentResponse,
    DeploymentStatus,
)

router = APIRouter()


class DeploymentListResponse(BaseModel):
    """Response for listing deployments."""

    deployments: list[DeploymentResponse]
    total: int
    limit: int
    offset: int


@router.post(
    "",
    response_model=DeploymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_key)],
    summary="Build and publish a repository",
    description="Clones, builds and publishes the repository, waiting for any "
    "deployment already in progress. Responds with the finished record; "
    "failed deployments are returned with status 500.",
    responses={500: {"model": DeploymentResponse}},
)
async def create_deployment(
    data: DeploymentCreate,
    engine: EngineDep,
    store: StoreDep,
) -> JSONResponse:
    """Run a deployment to completion."""
    deployment = engine.create_deployment(data)
    store.add(deployment)

    await engine.execute(deployment)

    response = DeploymentResponse.from_deployment(deployment)
    status_code = (
        status.HTTP_201_CREATED
        if deployment.status == DeploymentStatus.SUCCESS
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@router.get(
    "",
    response_model=DeploymentListResponse,
    summary="List deployments",
)
async def list_deployments(
    store: StoreDep,
    status_filter: Annotated[DeploymentStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> DeploymentListResponse:
    """List deployments, newest first."""
    deployments, total = store.list_deployments(
        status=status_filter,
        limit=limit,
        offset=offset,
    )

    return DeploymentListResponse(
        deployments=[DeploymentResponse.from_deployment(d) for d in deployments],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{deployment_id}",
    response_model=DeploymentResponse,
    summary="Get deployment details",
)
async def get_deployment(deployment: DeploymentDep) -> DeploymentResponse:
    """Get a deployment record, including captured stage output."""
    return DeploymentResponse.from_deployment(deployment)
