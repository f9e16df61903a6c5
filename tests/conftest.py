"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from deployer.api.deps import get_pipeline_engine, get_store
from deployer.config import Settings
from deployer.core.engine import PipelineEngine
from deployer.core.frameworks import create_default_registry
from deployer.core.store import DeploymentStore
from deployer.main import app
from tests.fakes import ScriptedRunner, fake_build, fake_clone


@pytest.fixture
def serving_dir(tmp_path: Path) -> Path:
    return tmp_path / "www" / "site"


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "builds"


@pytest.fixture
def test_settings(serving_dir: Path, workspace_root: Path) -> Settings:
    return Settings(
        serving_dir=str(serving_dir),
        workspace_root=str(workspace_root),
        serve_path="/",
    )


@pytest.fixture
def runner() -> ScriptedRunner:
    """Runner whose clone and build succeed and produce a site."""
    return ScriptedRunner({"git clone": fake_clone, "npm run": fake_build})


@pytest.fixture
def engine(
    runner: ScriptedRunner,
    serving_dir: Path,
    workspace_root: Path,
    test_settings: Settings,
) -> PipelineEngine:
    return PipelineEngine(
        serving_dir,
        workspace_root,
        runner=runner,
        registry=create_default_registry(hook_timeout=5),
        config=test_settings,
    )


@pytest.fixture
async def client(engine: PipelineEngine) -> AsyncClient:
    """Async test client wired to a fresh engine and store."""
    store = DeploymentStore()
    app.dependency_overrides[get_pipeline_engine] = lambda: engine
    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    store.clear()
