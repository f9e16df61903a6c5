"""Deployment pipeline engine.

Turns a validated deployment request into a published static site:

1. validate the request (before anything touches disk or the gate)
2. take the deployment gate
3. create a workspace named after the deployment id
4. run ``clone``, the framework hook (if any), ``install``, ``build``, ``verify``
5. publish the build output into the serving directory
6. release the gate and delete the workspace

Whatever happens inside a run, the caller gets back a terminal record.
"""

import asyncio
import shutil
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

import structlog

from deployer.config import Settings, settings as default_settings
from deployer.core.exceptions import (
    PublishFailedError,
    PublishUnrecoverableError,
    ValidationError,
)
from deployer.core.frameworks import FrameworkRegistry, FrameworkSpec, get_framework_registry
from deployer.core.gate import DeploymentGate
from deployer.core.publisher import ArtifactPublisher
from deployer.core.runner import CommandResult, CommandRunner
from deployer.core.stages import Stage, StageSequence
from deployer.models.deployment import Deployment, DeploymentCreate, ErrorKind
from deployer.utils.logging import get_logger

ALLOWED_URL_SCHEMES = ("http", "https")


def verify_build_output(workspace: Path, output_dir: str) -> CommandResult:
    """Check that the build produced ``output_dir`` inside ``workspace``."""
    path = workspace / output_dir
    if not path.is_dir():
        return CommandResult.precondition_failed(
            f"build output '{output_dir}' not found"
        )
    file_count = sum(1 for p in path.rglob("*") if p.is_file())
    return CommandResult.ok(f"build output '{output_dir}' found ({file_count} files)")


class PipelineEngine:
    """Runs deployments one at a time and publishes their output."""

    def __init__(
        self,
        serving_dir: str | Path | None = None,
        workspace_root: str | Path | None = None,
        *,
        gate: DeploymentGate | None = None,
        runner: CommandRunner | None = None,
        publisher: ArtifactPublisher | None = None,
        registry: FrameworkRegistry | None = None,
        config: Settings | None = None,
    ):
        self.config = config or default_settings
        self.workspace_root = Path(workspace_root or self.config.workspace_root).absolute()
        self.gate = gate or DeploymentGate()
        self.runner = runner or CommandRunner()
        self.publisher = publisher or ArtifactPublisher(
            serving_dir or self.config.serving_dir
        )
        self.registry = registry or get_framework_registry()
        self.logger = get_logger("pipeline")

    def validate(self, request: DeploymentCreate) -> None:
        """Reject malformed requests.

        Raises:
            ValidationError: If the repository URL or framework is not accepted
        """
        repo_url = request.repo_url.strip()
        if not repo_url:
            raise ValidationError("Repository URL is required", {"field": "repo_url"})

        parsed = urlparse(repo_url)
        if (
            parsed.scheme not in ALLOWED_URL_SCHEMES
            or not parsed.netloc
            or any(c.isspace() for c in repo_url)
        ):
            raise ValidationError(
                "Invalid repository URL",
                {"field": "repo_url", "repo_url": request.repo_url},
            )

        if request.framework not in self.registry:
            raise ValidationError(
                f"Unknown framework: {request.framework}",
                {"field": "framework", "supported": self.registry.names()},
            )

    def create_deployment(self, request: DeploymentCreate) -> Deployment:
        """Validate a request and create its pending record."""
        self.validate(request)
        return Deployment(repo_url=request.repo_url.strip(), framework=request.framework)

    async def deploy(self, request: DeploymentCreate) -> Deployment:
        """Validate, run and return the finished deployment record."""
        deployment = self.create_deployment(request)
        return await self.execute(deployment)

    async def execute(self, deployment: Deployment) -> Deployment:
        """Run a pending deployment to a terminal status.

        Never raises for pipeline problems: stage failures, publish failures
        and unexpected errors all end up in the returned record.
        """
        with structlog.contextvars.bound_contextvars(deployment_id=deployment.id):
            try:
                async with self.gate.hold(deployment.id):
                    await self._run(deployment)
            except Exception as e:
                self.logger.exception("pipeline.internal_fault", error=str(e))
                if not deployment.status.is_terminal:
                    deployment.mark_failed(
                        f"internal error: {type(e).__name__}",
                        ErrorKind.INTERNAL_FAULT,
                    )

            self.logger.info(
                "pipeline.finished",
                status=deployment.status.value,
                error=deployment.error_message,
            )
        return deployment

    async def _run(self, deployment: Deployment) -> None:
        framework = self.registry.get(deployment.framework)
        if framework is None:
            raise ValidationError(f"Unknown framework: {deployment.framework}")

        deployment.mark_running()
        self.logger.info(
            "pipeline.started",
            repo_url=deployment.repo_url,
            framework=deployment.framework,
        )

        workspace = self.workspace_root / deployment.id
        await asyncio.to_thread(workspace.mkdir, parents=True)
        try:
            sequence = StageSequence(self._build_stages(deployment, framework))
            failure = await sequence.run(workspace, deployment.record_stage_output)
            if failure is not None:
                deployment.mark_failed(
                    failure.message, ErrorKind.STAGE_FAILURE, stage=failure.stage_name
                )
                return

            await self._publish(deployment, workspace / framework.output_dir)
        finally:
            await self._reclaim(workspace)

    def _build_stages(
        self, deployment: Deployment, framework: FrameworkSpec
    ) -> list[Stage]:
        config = self.config
        runner = self.runner

        async def clone(workspace: Path) -> CommandResult:
            return await runner.run(
                None,
                config.clone_timeout_seconds,
                config.git_command,
                "clone",
                deployment.repo_url,
                str(workspace),
            )

        async def install(workspace: Path) -> CommandResult:
            if not await asyncio.to_thread((workspace / "package.json").is_file):
                return CommandResult.precondition_failed("package.json not found")
            return await runner.run(
                workspace,
                config.install_timeout_seconds,
                config.package_manager,
                *config.install_args,
            )

        async def build(workspace: Path) -> CommandResult:
            return await runner.run(
                workspace,
                config.build_timeout_seconds,
                config.package_manager,
                *config.build_args,
            )

        async def verify(workspace: Path) -> CommandResult:
            return await asyncio.to_thread(
                verify_build_output, workspace, framework.output_dir
            )

        stages = [Stage("clone", clone)]
        if framework.hook is not None:
            hook = framework.hook

            async def framework_hook(workspace: Path) -> CommandResult:
                return await hook.apply(workspace, runner)

            stages.append(Stage("framework_hook", framework_hook))
        stages += [
            Stage("install", install),
            Stage("build", build),
            Stage("verify", verify),
        ]
        return stages

    async def _publish(self, deployment: Deployment, output_dir: Path) -> None:
        try:
            result = await asyncio.to_thread(
                self.publisher.publish, output_dir, deployment.id
            )
        except PublishUnrecoverableError as e:
            self.logger.critical(
                "pipeline.publish.unrecoverable",
                error=e.message,
                previous_path=e.previous_path,
                action="operator attention required",
            )
            deployment.mark_failed(e.message, ErrorKind.PUBLISH_UNRECOVERABLE)
            return
        except PublishFailedError as e:
            self.logger.error("pipeline.publish.failed", error=e.message)
            deployment.mark_failed(e.message, ErrorKind.PUBLISH_FAILED)
            return

        if result.cleanup_warning:
            self.logger.warning("pipeline.publish.cleanup_warning", warning=result.cleanup_warning)

        deployment.mark_succeeded(self.config.serve_path)
        self.logger.info("pipeline.published", deploy_path=deployment.deploy_path)

    async def _reclaim(self, workspace: Path) -> None:
        try:
            await asyncio.to_thread(shutil.rmtree, workspace)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning("pipeline.workspace.cleanup_failed", path=str(workspace), error=str(e))


@lru_cache
def get_engine() -> PipelineEngine:
    """Get the process-wide pipeline engine."""
    return PipelineEngine()
