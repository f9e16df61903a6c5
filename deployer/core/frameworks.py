"""Framework registry and framework-specific setup hooks.

A framework is known to the service only if it is registered here. Each
registration may carry a hook: a marker file plus an ordered list of commands
that run between ``clone`` and ``install`` when the marker is present in the
cloned repository.
"""

import asyncio
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from deployer.config import settings
from deployer.core.runner import CommandResult
from deployer.utils.logging import get_logger

logger = get_logger(__name__)


class Runner(Protocol):
    async def run(
        self, working_dir: str | Path | None, timeout: float, program: str, *args: str
    ) -> CommandResult: ...


@dataclass(frozen=True)
class HookCommand:
    """One external command run by a framework hook."""

    program: str
    args: tuple[str, ...] = ()
    timeout: float = 120


@dataclass(frozen=True)
class FrameworkHook:
    """Conditional setup commands keyed on a marker file."""

    marker: str
    commands: tuple[HookCommand, ...]

    def applies_to(self, workspace: Path) -> bool:
        return (workspace / self.marker).is_file()

    async def apply(self, workspace: Path, runner: Runner) -> CommandResult:
        """Run the hook commands in ``workspace``.

        Without the marker file this is a no-op that succeeds with no output.
        Otherwise commands run in order and their outputs are joined with
        newlines; the first failing command fails the hook.
        """
        if not await asyncio.to_thread(self.applies_to, workspace):
            logger.info("framework_hook.skipped", marker=self.marker)
            return CommandResult.ok()

        outputs: list[str] = []
        for command in self.commands:
            result = await runner.run(
                workspace, command.timeout, command.program, *command.args
            )
            outputs.append(result.output)
            if not result.succeeded:
                return CommandResult(
                    output="\n".join(outputs),
                    outcome=result.outcome,
                    exit_code=result.exit_code,
                    timeout=result.timeout,
                    message=f"{command.program} {' '.join(command.args)}: "
                    f"{result.describe()}",
                )

        return CommandResult.ok("\n".join(outputs))


@dataclass(frozen=True)
class FrameworkSpec:
    """A deployable framework and where its build writes static output."""

    name: str
    hook: FrameworkHook | None = None
    output_dir: str = "dist"


class FrameworkRegistry:
    """Registry of frameworks accepted by the service."""

    def __init__(self):
        self._frameworks: dict[str, FrameworkSpec] = {}

    def register(self, spec: FrameworkSpec) -> None:
        """Register a framework, replacing any previous spec of the same name."""
        if spec.name in self._frameworks:
            logger.warning("framework.overwritten", framework=spec.name)
        self._frameworks[spec.name] = spec

    def get(self, name: str) -> FrameworkSpec | None:
        return self._frameworks.get(name)

    def names(self) -> list[str]:
        return sorted(self._frameworks)

    def __contains__(self, name: object) -> bool:
        return name in self._frameworks


def prisma_hook(timeout: float) -> FrameworkHook:
    """Client generation then migrations for repositories with a Prisma schema."""
    return FrameworkHook(
        marker="prisma/schema.prisma",
        commands=(
            HookCommand("npx", ("prisma", "generate"), timeout),
            HookCommand("npx", ("prisma", "migrate", "deploy"), timeout),
        ),
    )


def create_default_registry(hook_timeout: float | None = None) -> FrameworkRegistry:
    """Registry with the built-in frameworks."""
    timeout = hook_timeout if hook_timeout is not None else settings.hook_timeout_seconds

    registry = FrameworkRegistry()
    for name in ("react", "vue", "svelte", "vite"):
        registry.register(FrameworkSpec(name=name))
    registry.register(FrameworkSpec(name="node-prisma", hook=prisma_hook(timeout)))
    return registry


@lru_cache
def get_framework_registry() -> FrameworkRegistry:
    """Get the process-wide framework registry."""
    return create_default_registry()
