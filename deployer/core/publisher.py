"""Atomic publication of a built artifact tree into the serving location.

The serving location is a single directory that the static file server reads
from. A new tree replaces it in three renames, all inside the serving
location's parent directory so they stay on one filesystem:

1. copy the build output to ``.<name>.staging-<id>``
2. rename the live tree to ``.<name>.previous-<id>`` (skipped on first publish)
3. rename the staging tree to the serving location

If step 3 fails the previous tree is renamed back. The previous tree is
deleted only after step 3 has succeeded.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from deployer.core.exceptions import PublishFailedError, PublishUnrecoverableError
from deployer.utils.logging import get_logger

logger = get_logger(__name__)

RenameFunc = Callable[[Path, Path], None]

STAGING_MARKER = "staging"
PREVIOUS_MARKER = "previous"


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a successful publish."""

    serving_dir: Path
    replaced_previous: bool
    cleanup_warning: str | None = None


class ArtifactPublisher:
    """Swaps freshly built trees into one shared serving directory."""

    def __init__(self, serving_dir: str | Path, rename: RenameFunc = os.rename):
        self.serving_dir = Path(serving_dir).absolute()
        self._rename = rename

    def _sibling(self, marker: str, deployment_id: str) -> Path:
        return self.serving_dir.parent / f".{self.serving_dir.name}.{marker}-{deployment_id}"

    def staging_path(self, deployment_id: str) -> Path:
        return self._sibling(STAGING_MARKER, deployment_id)

    def previous_path(self, deployment_id: str) -> Path:
        return self._sibling(PREVIOUS_MARKER, deployment_id)

    def publish(self, source_dir: str | Path, deployment_id: str) -> PublishResult:
        """Make ``source_dir``'s contents the live serving tree.

        Raises:
            PublishFailedError: Nothing changed at the serving location
            PublishUnrecoverableError: The live tree was moved aside and could
                not be restored
        """
        source = Path(source_dir)
        staging = self.staging_path(deployment_id)
        previous = self.previous_path(deployment_id)

        try:
            self._stage(source, staging)
        except OSError as e:
            _remove_tree(staging)
            logger.error("publisher.staging.failed", source=str(source), error=str(e))
            raise PublishFailedError(f"could not stage {source}: {e}", e) from e

        replaced_previous = self.serving_dir.exists()
        if replaced_previous:
            try:
                self._rename(self.serving_dir, previous)
            except OSError as e:
                _remove_tree(staging)
                logger.error("publisher.move_aside.failed", error=str(e))
                raise PublishFailedError(
                    f"could not move {self.serving_dir} aside: {e}", e
                ) from e

        try:
            self._rename(staging, self.serving_dir)
        except OSError as e:
            logger.error("publisher.swap.failed", error=str(e))
            _remove_tree(staging)
            if replaced_previous:
                self._rollback(previous, e)
            raise PublishFailedError(
                f"could not move new tree into {self.serving_dir}: {e}", e
            ) from e

        logger.info(
            "publisher.swap.completed",
            serving_dir=str(self.serving_dir),
            deployment_id=deployment_id,
        )

        cleanup_warning = None
        if replaced_previous:
            try:
                shutil.rmtree(previous)
            except OSError as e:
                cleanup_warning = f"could not remove previous tree {previous}: {e}"
                logger.warning("publisher.cleanup.failed", path=str(previous), error=str(e))

        return PublishResult(
            serving_dir=self.serving_dir,
            replaced_previous=replaced_previous,
            cleanup_warning=cleanup_warning,
        )

    def _stage(self, source: Path, staging: Path) -> None:
        if not source.is_dir():
            raise NotADirectoryError(f"build output is not a directory: {source}")
        _remove_tree(staging)
        self.serving_dir.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, staging, symlinks=True)

    def _rollback(self, previous: Path, cause: OSError) -> None:
        try:
            self._rename(previous, self.serving_dir)
        except OSError as rollback_error:
            logger.critical(
                "publisher.rollback.failed",
                serving_dir=str(self.serving_dir),
                previous_path=str(previous),
                error=str(cause),
                rollback_error=str(rollback_error),
            )
            raise PublishUnrecoverableError(
                str(cause), cause, rollback_error, str(previous)
            ) from cause
        logger.info("publisher.rollback.completed", serving_dir=str(self.serving_dir))

    def recover(self) -> list[str]:
        """Repair the serving location after an interrupted publish.

        Restores the newest moved-aside tree if the serving directory is
        missing, then deletes leftover staging and previous trees.

        Returns:
            Descriptions of the actions taken
        """
        parent = self.serving_dir.parent
        if not parent.is_dir():
            return []

        prefix = f".{self.serving_dir.name}."
        staging = sorted(parent.glob(f"{prefix}{STAGING_MARKER}-*"))
        previous = sorted(parent.glob(f"{prefix}{PREVIOUS_MARKER}-*"))
        actions: list[str] = []

        if not self.serving_dir.exists() and previous:
            newest = previous.pop()
            self._rename(newest, self.serving_dir)
            actions.append(f"restored {newest.name}")
            logger.warning("publisher.recover.restored", path=str(newest))

        for leftover in staging + previous:
            _remove_tree(leftover)
            actions.append(f"removed {leftover.name}")
            logger.info("publisher.recover.removed", path=str(leftover))

        return actions


def _remove_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.exists():
        shutil.rmtree(path, ignore_errors=True)
