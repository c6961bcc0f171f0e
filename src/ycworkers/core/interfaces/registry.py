"""Host node registry interfaces.

The registry itself belongs to the host automation system. The core reads
it through LiveWorkerLookup and adds or drops nodes only through
WorkerRegistrar.
"""

from abc import ABC, abstractmethod

from ycworkers.core.models.instance import CloudInstance
from ycworkers.core.models.template import Template
from ycworkers.core.models.worker import WorkerNode


class LiveWorkerLookup(ABC):
    """Read-only view of the worker nodes known to the host."""

    @abstractmethod
    def live_workers(self) -> list[WorkerNode]:
        """All registered worker nodes of this plugin's kind."""
        ...

    @abstractmethod
    def get_worker(self, name: str) -> WorkerNode | None:
        """Worker node by name, or None once it has been removed."""
        ...


class WorkerRegistrar(ABC):
    """Turns cloud instances into worker nodes known to the scheduler, and back."""

    @abstractmethod
    def register(self, instance: CloudInstance, template: Template) -> WorkerNode:
        """Register a worker for instance.

        Raises:
            ConfigurationError: if the host rejects the node (e.g. duplicate name)
        """
        ...

    @abstractmethod
    def deregister(self, node: WorkerNode) -> bool:
        """Drop node after its instance was terminated.

        Only this exact node is removed: a node registered since under the
        same name stays.

        Returns:
            True if node was registered and has been removed
        """
        ...
