"""Integration tests for API endpoints."""

from pathlib import Path

import pytest
from httpx import AsyncClient

from deployer.config import settings
from deployer.core.engine import PipelineEngine
from tests.fakes import failing_build


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test health check returns healthy status."""
        response = await client.get("/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["deployment_in_progress"] is False
        assert data["current_deployment"] is None
        assert "version" in data
        assert "timestamp" in data


class TestDeploymentsEndpoints:
    """Tests for deployment endpoints."""

    @pytest.mark.asyncio
    async def test_successful_deployment(self, client: AsyncClient, serving_dir: Path):
        response = await client.post(
            "/v1/deployments",
            json={"repo_url": "https://example.com/r.git", "framework": "react"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "success"
        assert data["deploy_path"] == "/"
        assert data["error_message"] is None
        assert list(data["stage_outputs"]) == ["clone", "install", "build", "verify"]
        assert (serving_dir / "index.html").exists()
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_failed_deployment_returns_record(
        self, client: AsyncClient, engine: PipelineEngine
    ):
        engine.runner.handlers["npm run"] = failing_build

        response = await client.post(
            "/v1/deployments",
            json={"repo_url": "https://example.com/r.git", "framework": "react"},
        )

        assert response.status_code == 500
        data = response.json()
        assert data["status"] == "failed"
        assert data["failed_stage"] == "build"
        assert "build" in data["error_message"]
        assert data["deploy_path"] is None
        assert "clone" in data["stage_outputs"]
        assert "install" in data["stage_outputs"]

    @pytest.mark.asyncio
    async def test_unknown_framework_rejected(
        self, client: AsyncClient, tmp_path: Path
    ):
        response = await client.post(
            "/v1/deployments",
            json={"repo_url": "https://example.com/r.git", "framework": "cobol-web"},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATIONERROR"
        assert "cobol-web" in error["message"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_invalid_repo_url_rejected(self, client: AsyncClient):
        response = await client.post(
            "/v1/deployments",
            json={"repo_url": "not a url", "framework": "react"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, client: AsyncClient):
        response = await client.post("/v1/deployments", json={"framework": "react"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_api_key_required_when_configured(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(settings, "deploy_api_key", "s3cret")
        payload = {"repo_url": "https://example.com/r.git", "framework": "react"}

        missing = await client.post("/v1/deployments", json=payload)
        wrong = await client.post(
            "/v1/deployments", json=payload, headers={"X-API-Key": "nope"}
        )
        accepted = await client.post(
            "/v1/deployments", json=payload, headers={"X-API-Key": "s3cret"}
        )

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert accepted.status_code == 201

    @pytest.mark.asyncio
    async def test_get_and_list_deployments(self, client: AsyncClient):
        created = await client.post(
            "/v1/deployments",
            json={"repo_url": "https://example.com/r.git", "framework": "vue"},
        )
        deployment_id = created.json()["id"]

        fetched = await client.get(f"/v1/deployments/{deployment_id}")
        assert fetched.status_code == 200
        assert fetched.json()["framework"] == "vue"

        listed = await client.get("/v1/deployments", params={"status": "success"})
        assert listed.status_code == 200
        data = listed.json()
        assert data["total"] == 1
        assert data["deployments"][0]["id"] == deployment_id

    @pytest.mark.asyncio
    async def test_get_missing_deployment(self, client: AsyncClient):
        response = await client.get("/v1/deployments/deploy-0-000000")

        assert response.status_code == 404
