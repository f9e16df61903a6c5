"""Unit tests for stage sequencing."""

from pathlib import Path

import pytest

from deployer.core.runner import CommandResult, Outcome
from deployer.core.stages import SequenceState, Stage, StageSequence


def _stage(name: str, result: CommandResult, log: list[str]) -> Stage:
    async def action(workspace: Path) -> CommandResult:
        log.append(name)
        return result

    return Stage(name, action)


class TestStageSequence:
    """Tests for StageSequence."""

    @pytest.mark.asyncio
    async def test_runs_all_stages_in_order(self, tmp_path: Path):
        executed: list[str] = []
        recorded: dict[str, str] = {}
        sequence = StageSequence(
            [
                _stage("clone", CommandResult.ok("cloned"), executed),
                _stage("install", CommandResult.ok("installed"), executed),
                _stage("build", CommandResult.ok("built"), executed),
            ]
        )

        failure = await sequence.run(tmp_path, recorded.__setitem__)

        assert failure is None
        assert executed == ["clone", "install", "build"]
        assert list(recorded) == ["clone", "install", "build"]
        assert recorded["build"] == "built"
        assert sequence.state == SequenceState.SUCCEEDED
        assert sequence.stage_index == 2

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, tmp_path: Path):
        executed: list[str] = []
        recorded: dict[str, str] = {}
        broken = CommandResult(
            output="npm ERR! missing script", outcome=Outcome.EXITED_NON_ZERO, exit_code=1
        )
        sequence = StageSequence(
            [
                _stage("clone", CommandResult.ok("cloned"), executed),
                _stage("install", broken, executed),
                _stage("build", CommandResult.ok("built"), executed),
            ]
        )

        failure = await sequence.run(tmp_path, recorded.__setitem__)

        assert failure is not None
        assert failure.stage_name == "install"
        assert failure.message == "install failed: exited with status 1"
        assert executed == ["clone", "install"]
        assert recorded == {"clone": "cloned", "install": "npm ERR! missing script"}
        assert sequence.state == SequenceState.FAILED
        assert sequence.stage_index == 1

    @pytest.mark.asyncio
    async def test_precondition_failure_stops_sequence(self, tmp_path: Path):
        executed: list[str] = []
        sequence = StageSequence(
            [
                _stage("verify", CommandResult.precondition_failed("no dist"), executed),
                _stage("after", CommandResult.ok(), executed),
            ]
        )

        failure = await sequence.run(tmp_path, lambda name, output: None)

        assert failure is not None
        assert failure.result.outcome == Outcome.PRECONDITION_FAILED
        assert executed == ["verify"]

    @pytest.mark.asyncio
    async def test_sequence_runs_once(self, tmp_path: Path):
        sequence = StageSequence([_stage("clone", CommandResult.ok(), [])])
        await sequence.run(tmp_path, lambda name, output: None)

        with pytest.raises(RuntimeError):
            await sequence.run(tmp_path, lambda name, output: None)

    def test_initial_state(self):
        sequence = StageSequence([_stage("clone", CommandResult.ok(), [])])

        assert sequence.state == SequenceState.NOT_STARTED
        assert sequence.stage_index is None
        assert sequence.stage_names == ["clone"]

    def test_rejects_duplicate_stage_names(self):
        with pytest.raises(ValueError, match="build"):
            StageSequence(
                [
                    _stage("build", CommandResult.ok(), []),
                    _stage("build", CommandResult.ok(), []),
                ]
            )
