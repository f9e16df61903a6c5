"""Data models for the deployer service."""

from deployer.models.deployment import (
    Deployment,
    DeploymentCreate,
    DeploymentResponse,
    DeploymentStatus,
    ErrorKind,
    new_deployment_id,
)

__all__ = [
    "Deployment",
    "DeploymentCreate",
    "DeploymentResponse",
    "DeploymentStatus",
    "ErrorKind",
    "new_deployment_id",
]
