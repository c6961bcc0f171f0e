"""In-process worker node registry.

Stands in for the host automation system's node list: the provisioner
reads it through LiveWorkerLookup and adds nodes through WorkerRegistrar.
"""

import logging

from ycworkers.app.metrics.collector import WORKERS_REGISTERED
from ycworkers.core.errors import WorkerConflictError
from ycworkers.core.interfaces.launch import Launchable
from ycworkers.core.interfaces.registry import LiveWorkerLookup, WorkerRegistrar
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.instance import CloudInstance
from ycworkers.core.models.template import Template
from ycworkers.core.models.worker import WorkerConfig, WorkerNode

logger = logging.getLogger(__name__)


class NodeRegistry(LiveWorkerLookup, WorkerRegistrar):
    """Worker nodes keyed by name.

    Registering a name again for the same instance replaces the node
    (a reused orphan). The same name on a different instance is a conflict.
    """

    def __init__(
        self,
        cloud_name: str,
        launch_timeout_s: float,
        launcher: Launchable | None = None,
    ) -> None:
        self._cloud_name = cloud_name
        self._launch_timeout_s = launch_timeout_s
        self._launcher = launcher
        self._nodes: dict[str, WorkerNode] = {}

    def live_workers(self) -> list[WorkerNode]:
        return list(self._nodes.values())

    def get_worker(self, name: str) -> WorkerNode | None:
        return self._nodes.get(name)

    def deregister(self, node: WorkerNode) -> bool:
        if self._nodes.get(node.name) is not node:
            return False
        del self._nodes[node.name]
        WORKERS_REGISTERED.set(len(self._nodes))
        logger.info(
            "Worker removed",
            extra={"event": LogEvent.WORKER_REMOVED, "component": Component.REGISTRY, "node": node.name},
        )
        return True

    def register(self, instance: CloudInstance, template: Template) -> WorkerNode:
        config = WorkerConfig.from_template(
            instance, template, self._cloud_name, self._launch_timeout_s
        )
        existing = self._nodes.get(config.name)
        if existing is not None and existing.instance_id != config.instance_id:
            raise WorkerConflictError(
                f"Worker {config.name!r} is already bound to instance {existing.instance_id}"
            )

        node = WorkerNode(config=config, launcher=self._launcher)
        self._nodes[config.name] = node
        WORKERS_REGISTERED.set(len(self._nodes))
        logger.info(
            "Worker registered",
            extra={
                "event": LogEvent.WORKER_REGISTERED,
                "component": Component.REGISTRY,
                "node": node.name,
                "instance_id": node.instance_id,
                "replaced": existing is not None,
            },
        )
        return node
