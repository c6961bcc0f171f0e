"""Cloud gateway interface for compute instance operations."""

from abc import ABC, abstractmethod
from typing import Any

from ycworkers.core.models.instance import CloudInstance, OperationResult


class CloudGateway(ABC):
    """Interface for the compute provider.

    Every call is a blocking network round trip and may raise
    CloudGatewayError. Retry policy, if any, belongs to the implementation.

    Implementations: YandexCloudGateway
    """

    @abstractmethod
    async def list_instances(self, instance_filter: str) -> list[CloudInstance]:
        """List instances matching a filter expression.

        Args:
            instance_filter: Provider filter, e.g. 'name="yc-workers"'

        Returns:
            Instances in provider order
        """
        ...

    @abstractmethod
    async def get_instance(self, instance_id: str) -> CloudInstance | None:
        """Fetch one instance, or None if it does not exist."""
        ...

    @abstractmethod
    async def start_instance(self, instance_id: str) -> None:
        """Request a stopped instance to start."""
        ...

    @abstractmethod
    async def create_instance(self, request: dict[str, Any]) -> OperationResult:
        """Submit a create request.

        Returns:
            The create operation; its error carries the provider's message
        """
        ...

    @abstractmethod
    async def delete_instance(self, instance_id: str) -> None:
        """Irreversibly delete an instance. Does not wait for completion."""
        ...
