"""Launch capability interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ycworkers.core.models.worker import WorkerNode


class Launchable(ABC):
    """Transport-specific agent handshake.

    Implementations: SshLauncher
    """

    @abstractmethod
    async def attempt_connect(self, node: "WorkerNode") -> None:
        """Bring the agent on node's instance online.

        Returns when the agent is connected.

        Raises:
            LaunchFailure: handshake failed (or any transport error)
        """
        ...
