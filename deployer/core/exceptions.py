"""Exceptions raised by the deployer service."""

from typing import Any


class DeployerError(Exception):
    """Base exception for the deployer service."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DeployerError):
    """Deployment request rejected before any side effect."""

    pass


class InvalidTransitionError(DeployerError):
    """A deployment record was mutated out of order."""

    def __init__(self, deployment_id: str, message: str):
        super().__init__(
            f"Deployment {deployment_id}: {message}",
            {"deployment_id": deployment_id},
        )


class PublishFailedError(DeployerError):
    """Publishing failed; the serving location still holds the previous tree."""

    def __init__(self, message: str, cause: BaseException | None = None):
        details = {}
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(f"Publish failed: {message}", details)
        self.cause = cause


class PublishUnrecoverableError(DeployerError):
    """Publishing failed and the previous tree could not be restored.

    The serving location may be missing. An operator has to inspect the
    ``previous_path`` left on disk.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException,
        rollback_error: BaseException,
        previous_path: str,
    ):
        super().__init__(
            f"Publish failed and rollback failed: {message}",
            {
                "cause": str(cause),
                "rollback_error": str(rollback_error),
                "previous_path": previous_path,
            },
        )
        self.cause = cause
        self.rollback_error = rollback_error
        self.previous_path = previous_path
