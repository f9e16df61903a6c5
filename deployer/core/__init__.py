"""Core deployment pipeline for the deployer service."""

from deployer.core.exceptions import (
    DeployerError,
    InvalidTransitionError,
    PublishFailedError,
    PublishUnrecoverableError,
    ValidationError,
)

__all__ = [
    "DeployerError",
    "InvalidTransitionError",
    "PublishFailedError",
    "PublishUnrecoverableError",
    "ValidationError",
]
