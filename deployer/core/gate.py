"""Single-flight admission control for deployment pipelines."""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator
from uuid import uuid4

from deployer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Permit:
    """Proof of holding the gate."""

    holder: str
    token: str = field(default_factory=lambda: uuid4().hex)
    acquired_at: float = field(default_factory=time.monotonic)


class DeploymentGate:
    """Allows at most one deployment pipeline to run at a time.

    Waiters are woken in the order they blocked. There is no acquisition
    timeout; the holder is bounded by its command timeouts instead.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._permit: Permit | None = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> str | None:
        return self._permit.holder if self._permit else None

    async def acquire(self, holder: str) -> Permit:
        """Block until the gate is free, then take it for ``holder``."""
        if self._lock.locked():
            logger.info("gate.waiting", holder=holder, current=self.holder)

        await self._lock.acquire()
        self._permit = Permit(holder=holder)
        logger.info("gate.acquired", holder=holder)
        return self._permit

    def release(self, permit: Permit) -> None:
        """Give the gate back. Only the outstanding permit may be released."""
        if self._permit is None or permit.token != self._permit.token:
            raise RuntimeError(f"Permit for {permit.holder} is not the outstanding permit")

        held_ms = int((time.monotonic() - permit.acquired_at) * 1000)
        self._permit = None
        self._lock.release()
        logger.info("gate.released", holder=permit.holder, held_ms=held_ms)

    @asynccontextmanager
    async def hold(self, holder: str) -> AsyncIterator[Permit]:
        """Hold the gate for the duration of the block."""
        permit = await self.acquire(holder)
        try:
            yield permit
        finally:
            self.release(permit)
