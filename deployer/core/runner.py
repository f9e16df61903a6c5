"""External command execution with a wall-clock timeout."""

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from deployer.utils.logging import get_logger

logger = get_logger(__name__)

_READ_CHUNK = 64 * 1024


class Outcome(str, Enum):
    """Classified result of a command or stage."""

    EXITED_ZERO = "exited_zero"
    EXITED_NON_ZERO = "exited_non_zero"
    TIMED_OUT = "timed_out"
    PRECONDITION_FAILED = "precondition_failed"


@dataclass(frozen=True)
class CommandResult:
    """Captured output and outcome of one command or stage action."""

    output: str
    outcome: Outcome
    exit_code: int | None = None
    timeout: float | None = None
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.EXITED_ZERO

    def describe(self) -> str:
        """Human-readable detail used in deployment error messages."""
        if self.message:
            return self.message
        if self.outcome == Outcome.TIMED_OUT:
            return f"timed out after {self.timeout:g}s"
        if self.outcome == Outcome.EXITED_NON_ZERO:
            if self.exit_code is None:
                return "command could not be started"
            return f"exited with status {self.exit_code}"
        return self.outcome.value

    @classmethod
    def ok(cls, output: str = "") -> "CommandResult":
        return cls(output=output, outcome=Outcome.EXITED_ZERO, exit_code=0)

    @classmethod
    def precondition_failed(cls, message: str, output: str = "") -> "CommandResult":
        return cls(
            output=output or message,
            outcome=Outcome.PRECONDITION_FAILED,
            message=message,
        )


class CommandRunner:
    """Runs external programs with merged output capture and a hard timeout.

    Each child is started in its own session so that on timeout the whole
    process group (e.g. ``npm`` and the node process it spawned) is killed,
    not just the direct child.
    """

    async def run(
        self,
        working_dir: str | Path | None,
        timeout: float,
        program: str,
        *args: str,
    ) -> CommandResult:
        cwd = str(working_dir) if working_dir else None
        command = " ".join([program, *args])
        start_time = time.monotonic()

        logger.info("command.started", command=command, cwd=cwd, timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("command.launch_failed", command=command, error=str(e))
            return CommandResult(
                output=f"failed to start {program}: {e}",
                outcome=Outcome.EXITED_NON_ZERO,
                exit_code=None,
            )

        chunks: list[bytes] = []

        async def _collect() -> None:
            assert process.stdout is not None
            while True:
                chunk = await process.stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                chunks.append(chunk)
            await process.wait()

        timed_out = False
        try:
            await asyncio.wait_for(_collect(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
        finally:
            # The direct child may have exited while a descendant still holds
            # the pipe, so the group is killed on timeout regardless
            if timed_out or process.returncode is None:
                _kill_process_group(process)
            if process.returncode is None:
                await process.wait()

        output = b"".join(chunks).decode(errors="replace")
        duration_ms = int((time.monotonic() - start_time) * 1000)

        if timed_out:
            logger.warning(
                "command.timed_out",
                command=command,
                timeout=timeout,
                duration_ms=duration_ms,
            )
            return CommandResult(
                output=output,
                outcome=Outcome.TIMED_OUT,
                exit_code=process.returncode,
                timeout=timeout,
            )

        logger.info(
            "command.completed",
            command=command,
            returncode=process.returncode,
            output_len=len(output),
            duration_ms=duration_ms,
        )

        if process.returncode != 0:
            return CommandResult(
                output=output,
                outcome=Outcome.EXITED_NON_ZERO,
                exit_code=process.returncode,
            )
        return CommandResult(output=output, outcome=Outcome.EXITED_ZERO, exit_code=0)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Group already gone; make sure the direct child is not left behind
        try:
            process.kill()
        except ProcessLookupError:
            pass
