"""Orphan matching - pure classification of a template's instances.

An instance is an orphan when it can be handed to a new worker:
- STOPPED: always reusable, even if a worker still references it
- otherwise: only if no live worker references its id
"""

import logging

from ycworkers.core.errors import CloudGatewayError
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.instance import CloudInstance
from ycworkers.core.models.worker import WorkerNode

logger = logging.getLogger(__name__)


def is_orphan(instance: CloudInstance, claimed_ids: set[str]) -> bool:
    """True if instance is STOPPED or not claimed by a live worker."""
    return instance.is_stopped or instance.id not in claimed_ids


def classify(
    snapshot: list[CloudInstance],
    live_nodes: list[WorkerNode],
    number: int,
) -> list[CloudInstance]:
    """Orphans in snapshot order, stopping once ``number`` are found.

    Snapshot order is provider-defined; first match wins.
    """
    if number <= 0:
        return []

    claimed_ids = {node.instance_id for node in live_nodes}
    orphans: list[CloudInstance] = []
    for instance in snapshot:
        if is_orphan(instance, claimed_ids):
            orphans.append(instance)
            if len(orphans) == number:
                break
    return orphans


class SnapshotReader:
    """Reads the instances belonging to a template.

    A failed listing yields an empty snapshot: reuse is best-effort, and
    the reconciler falls through to its create guard.
    """

    def __init__(self, gateway: CloudGateway) -> None:
        self._gateway = gateway

    async def read(self, instance_filter: str) -> list[CloudInstance]:
        try:
            return await self._gateway.list_instances(instance_filter)
        except CloudGatewayError as exc:
            logger.warning(
                "Instance snapshot unavailable, treating as empty: %s",
                exc.message,
                extra={
                    "event": LogEvent.GATEWAY_ERROR,
                    "component": Component.PROVISIONER,
                    "filter": instance_filter,
                    "error_code": exc.code.value,
                },
            )
            return []
