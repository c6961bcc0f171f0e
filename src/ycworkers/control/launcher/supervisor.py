"""LaunchSupervisor - connect a new worker or tear its instance down.

    PENDING_LAUNCH ──ok──────────────────────────▶ CONNECTED
          │
          └─fail─▶ FAILED_CLEANUP ──terminate──▶ TERMINATED

A failed launch is never retried here. The next demand cycle provisions
again.
"""

import asyncio
import logging
import time

from ycworkers.app.logging import bind_log_context, reset_log_context
from ycworkers.app.metrics.collector import (
    INSTANCES_TERMINATED_TOTAL,
    LAUNCH_DURATION,
    LAUNCH_TOTAL,
)
from ycworkers.core.domain.instance import LaunchState
from ycworkers.core.errors import LaunchFailure
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.registry import LiveWorkerLookup, WorkerRegistrar
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.worker import WorkerNode
from ycworkers.core.retryable import error_class_of

logger = logging.getLogger(__name__)

OFFLINE_REASON = "Agent failed to connect"


class LaunchSupervisor:
    """Drives each worker's handshake through its Launchable.

    Cleanup only touches the registry entry if it is still the node that
    failed; a node registered since under the same name is left alone.
    """

    def __init__(
        self,
        gateway: CloudGateway,
        lookup: LiveWorkerLookup,
        registrar: WorkerRegistrar,
        timeout_s: float = 300.0,
    ) -> None:
        self._gateway = gateway
        self._lookup = lookup
        self._registrar = registrar
        self._timeout_s = timeout_s

    async def launch(self, node: WorkerNode) -> LaunchState:
        """Connect node, or clean up after it. Never raises on launch failure."""
        token = bind_log_context(
            node=node.name,
            instance_id=node.instance_id,
            template=node.template_name,
        )
        try:
            return await self._launch(node)
        finally:
            reset_log_context(token)

    async def _launch(self, node: WorkerNode) -> LaunchState:
        extra = {"component": Component.LAUNCHER}
        logger.info("Launching agent", extra={"event": LogEvent.LAUNCH_STARTED, **extra})
        node.launch_state = LaunchState.PENDING_LAUNCH

        start = time.monotonic()
        try:
            if node.launcher is None:
                raise LaunchFailure("No launcher attached to node")
            await asyncio.wait_for(node.launcher.attempt_connect(node), timeout=self._timeout_s)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "Launch failed: %s",
                exc,
                extra={
                    "event": LogEvent.LAUNCH_FAILED,
                    "error_class": error_class_of(exc),
                    "error": str(exc) or type(exc).__name__,
                    **extra,
                },
            )
            await self._fail(node)
        else:
            node.launch_state = LaunchState.CONNECTED
            logger.info("Agent connected", extra={"event": LogEvent.LAUNCH_CONNECTED, **extra})

        LAUNCH_DURATION.labels(template=node.template_name).observe(time.monotonic() - start)
        LAUNCH_TOTAL.labels(template=node.template_name, state=node.launch_state.value).inc()
        return node.launch_state

    async def _fail(self, node: WorkerNode) -> None:
        node.launch_state = LaunchState.FAILED_CLEANUP
        try:
            node.set_accepting_tasks(False)
            if self._lookup.get_worker(node.name) is node:
                node.set_temporarily_offline(True, OFFLINE_REASON)
        except Exception:
            logger.exception(
                "Failed to take node offline",
                extra={"event": LogEvent.CLEANUP_FAILED},
            )
        finally:
            await self._terminate(node)
        node.launch_state = LaunchState.TERMINATED

    async def _terminate(self, node: WorkerNode) -> None:
        try:
            await self._gateway.delete_instance(node.instance_id)
        except Exception as exc:
            INSTANCES_TERMINATED_TOTAL.labels(result="error").inc()
            logger.error(
                "Terminate request failed for %s: %s",
                node.instance_id,
                exc,
                extra={"event": LogEvent.CLEANUP_FAILED},
            )
        else:
            INSTANCES_TERMINATED_TOTAL.labels(result="success").inc()
            logger.info("Terminate requested", extra={"event": LogEvent.INSTANCE_TERMINATED})

        try:
            self._registrar.deregister(node)
        except Exception:
            logger.exception(
                "Failed to remove node from registry",
                extra={"event": LogEvent.CLEANUP_FAILED},
            )
