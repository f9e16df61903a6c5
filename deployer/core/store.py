"""In-memory store of deployment records."""

from functools import lru_cache

from deployer.models.deployment import Deployment, DeploymentStatus


class DeploymentStore:
    """Keeps deployment records for lookup after the request returns.

    Records are kept for the lifetime of the process, newest last, up to
    ``max_records``; the oldest terminal records are evicted first.
    """

    def __init__(self, max_records: int = 500):
        self._deployments: dict[str, Deployment] = {}
        self._max_records = max_records

    def add(self, deployment: Deployment) -> Deployment:
        self._deployments[deployment.id] = deployment
        self._evict()
        return deployment

    def get(self, deployment_id: str) -> Deployment | None:
        return self._deployments.get(deployment_id)

    def list_deployments(
        self,
        status: DeploymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Deployment], int]:
        """List deployments, newest first, with optional status filtering."""
        deployments = list(self._deployments.values())

        if status:
            deployments = [d for d in deployments if d.status == status]

        deployments.sort(key=lambda d: d.created_at, reverse=True)

        total = len(deployments)
        return deployments[offset : offset + limit], total

    def clear(self) -> None:
        self._deployments.clear()

    def _evict(self) -> None:
        excess = len(self._deployments) - self._max_records
        if excess <= 0:
            return
        terminal = [d.id for d in self._deployments.values() if d.status.is_terminal]
        for deployment_id in terminal[:excess]:
            del self._deployments[deployment_id]


@lru_cache
def get_deployment_store() -> DeploymentStore:
    """Get the process-wide deployment store."""
    return DeploymentStore()
