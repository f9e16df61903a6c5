"""Deployment data models."""

import secrets
import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from deployer.core.exceptions import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_deployment_id() -> str:
    """Time-ordered, filesystem-safe identifier."""
    return f"deploy-{time.time_ns()}-{secrets.token_hex(3)}"


class DeploymentStatus(str, Enum):
    """Deployment lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED)


class ErrorKind(str, Enum):
    """Why a deployment failed."""

    STAGE_FAILURE = "stage_failure"
    PUBLISH_FAILED = "publish_failed"
    PUBLISH_UNRECOVERABLE = "publish_unrecoverable"
    INTERNAL_FAULT = "internal_fault"


class DeploymentCreate(BaseModel):
    """Request model for starting a deployment."""

    repo_url: str
    framework: str


class Deployment(BaseModel):
    """One build-and-publish attempt.

    Only the pipeline holding the deployment gate mutates a record, and only
    through the ``mark_*`` and ``record_stage_output`` methods. Once the status
    is terminal the record no longer changes.
    """

    id: str = Field(default_factory=new_deployment_id)
    repo_url: str
    framework: str
    status: DeploymentStatus = DeploymentStatus.PENDING

    stage_outputs: dict[str, str] = Field(default_factory=dict)

    deploy_path: str | None = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    failed_stage: str | None = None
    requires_attention: bool = False

    created_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def _require_status(self, expected: DeploymentStatus, action: str) -> None:
        if self.status != expected:
            raise InvalidTransitionError(
                self.id, f"cannot {action} while {self.status.value}"
            )

    def mark_running(self) -> None:
        self._require_status(DeploymentStatus.PENDING, "start")
        self.status = DeploymentStatus.RUNNING
        self.started_at = _utcnow()

    def record_stage_output(self, stage: str, output: str) -> None:
        """Append a stage's captured output. Each stage is recorded once."""
        self._require_status(DeploymentStatus.RUNNING, f"record output for {stage}")
        if stage in self.stage_outputs:
            raise InvalidTransitionError(self.id, f"output for {stage} already recorded")
        self.stage_outputs[stage] = output

    def mark_succeeded(self, deploy_path: str) -> None:
        self._require_status(DeploymentStatus.RUNNING, "succeed")
        self.status = DeploymentStatus.SUCCESS
        self.deploy_path = deploy_path
        self.completed_at = _utcnow()

    def mark_failed(
        self,
        message: str,
        kind: ErrorKind,
        stage: str | None = None,
    ) -> None:
        if self.status.is_terminal:
            raise InvalidTransitionError(
                self.id, f"cannot fail while {self.status.value}"
            )
        self.status = DeploymentStatus.FAILED
        self.error_message = message
        self.error_kind = kind
        self.failed_stage = stage
        self.requires_attention = kind == ErrorKind.PUBLISH_UNRECOVERABLE
        self.completed_at = _utcnow()


class DeploymentResponse(BaseModel):
    """API response model for a deployment."""

    id: str
    status: DeploymentStatus
    repo_url: str
    framework: str
    deploy_path: str | None = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    failed_stage: str | None = None
    requires_attention: bool = False
    stage_outputs: dict[str, str] = Field(default_factory=dict)

    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_deployment(cls, deployment: Deployment) -> "DeploymentResponse":
        """Create response from a deployment record."""
        return cls(
            id=deployment.id,
            status=deployment.status,
            repo_url=deployment.repo_url,
            framework=deployment.framework,
            deploy_path=deployment.deploy_path,
            error_message=deployment.error_message,
            error_kind=deployment.error_kind,
            failed_stage=deployment.failed_stage,
            requires_attention=deployment.requires_attention,
            stage_outputs=dict(deployment.stage_outputs),
            created_at=deployment.created_at,
            started_at=deployment.started_at,
            completed_at=deployment.completed_at,
        )
