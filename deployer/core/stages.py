"""Ordered execution of named pipeline stages.

A sequence runs its stages one after another against a workspace and stops at
the first stage whose result is not successful. Every attempted stage has its
output recorded, whether it succeeded or not; stages after a failure are never
started.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from deployer.core.runner import CommandResult
from deployer.utils.logging import get_logger

logger = get_logger(__name__)

StageAction = Callable[[Path], Awaitable[CommandResult]]
OutputRecorder = Callable[[str, str], None]


class SequenceState(str, Enum):
    """Lifecycle of a stage sequence."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Stage:
    """A named unit of pipeline work."""

    name: str
    action: StageAction


@dataclass(frozen=True)
class StageFailure:
    """The stage that stopped a sequence and its result."""

    stage_name: str
    result: CommandResult

    @property
    def message(self) -> str:
        return f"{self.stage_name} failed: {self.result.describe()}"


class StageSequence:
    """Runs stages in order, short-circuiting on the first failure."""

    def __init__(self, stages: list[Stage]):
        names = [stage.name for stage in stages]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate stage names: {sorted(duplicates)}")

        self.stages = list(stages)
        self.state = SequenceState.NOT_STARTED
        self.stage_index: int | None = None

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    async def run(
        self, workspace: Path, record: OutputRecorder
    ) -> StageFailure | None:
        """Run every stage against ``workspace``.

        Args:
            workspace: Directory handed to each stage action
            record: Called with ``(stage_name, output)`` after each attempt

        Returns:
            ``None`` when all stages succeeded, otherwise the failure
        """
        if self.state != SequenceState.NOT_STARTED:
            raise RuntimeError(f"Stage sequence already {self.state.value}")

        self.state = SequenceState.RUNNING

        for index, stage in enumerate(self.stages):
            self.stage_index = index
            logger.info("pipeline.stage.started", stage=stage.name, index=index)

            result = await stage.action(workspace)
            record(stage.name, result.output)

            if not result.succeeded:
                self.state = SequenceState.FAILED
                logger.warning(
                    "pipeline.stage.failed",
                    stage=stage.name,
                    outcome=result.outcome.value,
                    detail=result.describe(),
                )
                return StageFailure(stage_name=stage.name, result=result)

            logger.info("pipeline.stage.completed", stage=stage.name)

        self.state = SequenceState.SUCCEEDED
        return None
