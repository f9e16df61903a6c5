"""Unit tests for deployment models."""

import re

import pytest

from deployer.core.exceptions import InvalidTransitionError
from deployer.models.deployment import (
    Deployment,
    DeploymentResponse,
    DeploymentStatus,
    ErrorKind,
    new_deployment_id,
)


@pytest.fixture
def deployment() -> Deployment:
    return Deployment(repo_url="https://example.com/r.git", framework="react")


class TestDeploymentId:
    """Tests for deployment identifiers."""

    def test_filesystem_safe(self):
        assert re.fullmatch(r"deploy-\d+-[0-9a-f]{6}", new_deployment_id())

    def test_unique(self):
        ids = {new_deployment_id() for _ in range(1000)}
        assert len(ids) == 1000


class TestDeployment:
    """Tests for Deployment lifecycle."""

    def test_defaults(self, deployment: Deployment):
        assert deployment.status == DeploymentStatus.PENDING
        assert deployment.stage_outputs == {}
        assert deployment.error_message is None
        assert deployment.deploy_path is None

    def test_success_path(self, deployment: Deployment):
        deployment.mark_running()
        deployment.record_stage_output("clone", "cloned")
        deployment.record_stage_output("build", "built")
        deployment.mark_succeeded("/")

        assert deployment.status == DeploymentStatus.SUCCESS
        assert deployment.deploy_path == "/"
        assert list(deployment.stage_outputs) == ["clone", "build"]
        assert deployment.started_at is not None
        assert deployment.completed_at is not None

    def test_stage_output_is_append_only(self, deployment: Deployment):
        deployment.mark_running()
        deployment.record_stage_output("clone", "first")

        with pytest.raises(InvalidTransitionError):
            deployment.record_stage_output("clone", "second")
        assert deployment.stage_outputs["clone"] == "first"

    def test_cannot_record_before_running(self, deployment: Deployment):
        with pytest.raises(InvalidTransitionError):
            deployment.record_stage_output("clone", "cloned")

    def test_failure_is_terminal(self, deployment: Deployment):
        deployment.mark_running()
        deployment.mark_failed("build failed: exited with status 1", ErrorKind.STAGE_FAILURE, "build")

        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.failed_stage == "build"
        assert deployment.requires_attention is False

        with pytest.raises(InvalidTransitionError):
            deployment.mark_failed("again", ErrorKind.INTERNAL_FAULT)
        with pytest.raises(InvalidTransitionError):
            deployment.mark_succeeded("/")
        assert deployment.error_message == "build failed: exited with status 1"

    def test_unrecoverable_publish_requires_attention(self, deployment: Deployment):
        deployment.mark_running()
        deployment.mark_failed("rollback failed", ErrorKind.PUBLISH_UNRECOVERABLE)

        assert deployment.requires_attention is True

    def test_cannot_start_twice(self, deployment: Deployment):
        deployment.mark_running()

        with pytest.raises(InvalidTransitionError):
            deployment.mark_running()

    def test_response_serialization(self, deployment: Deployment):
        deployment.mark_running()
        deployment.record_stage_output("clone", "cloned")
        deployment.mark_succeeded("/")

        data = DeploymentResponse.from_deployment(deployment).model_dump(mode="json")

        assert data["id"] == deployment.id
        assert data["status"] == "success"
        assert data["repo_url"] == "https://example.com/r.git"
        assert data["framework"] == "react"
        assert data["deploy_path"] == "/"
        assert data["error_message"] is None
        assert data["stage_outputs"] == {"clone": "cloned"}
