"""Per-template provisioning workers.

Each template gets one TemplateWorker: a single asyncio task consuming a
queue of ProvisionRequests. Reconciliations for the same template therefore
never overlap, so two demand bursts cannot claim the same orphan or both
pass the instance cap check.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ycworkers.app.metrics.collector import PROVISION_QUEUE_SIZE
from ycworkers.control.launcher.supervisor import LaunchSupervisor
from ycworkers.control.provisioner.reconciler import ProvisioningReconciler
from ycworkers.core.domain.instance import ProvisionOption
from ycworkers.core.errors import TemplateNotFoundError
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.template import Template
from ycworkers.core.models.worker import WorkerNode

logger = logging.getLogger(__name__)


@dataclass
class ProvisionRequest:
    number: int
    options: frozenset[ProvisionOption]
    future: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class TemplateWorker:
    """Single consumer for one template's provisioning requests.

    Workers returned by a reconciliation are handed to the launch
    supervisor as background tasks; the caller gets them back immediately.
    """

    def __init__(
        self,
        reconciler: ProvisioningReconciler,
        supervisor: LaunchSupervisor | None = None,
        queue_maxsize: int = 100,
    ) -> None:
        self._reconciler = reconciler
        self._supervisor = supervisor
        self._queue: asyncio.Queue[ProvisionRequest] = asyncio.Queue(maxsize=queue_maxsize)
        self._task: asyncio.Task | None = None
        self._launches: set[asyncio.Task] = set()

    @property
    def template(self) -> Template:
        return self._reconciler.template

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name=f"provisioner:{self.template.name}")

    async def submit(
        self,
        number: int,
        options: frozenset[ProvisionOption] = frozenset(),
    ) -> list[WorkerNode] | None:
        """Queue a request and wait for its reconciliation result."""
        request = ProvisionRequest(number=number, options=frozenset(options))
        await self._queue.put(request)
        PROVISION_QUEUE_SIZE.labels(template=self.template.name).set(self._queue.qsize())
        return await request.future

    async def run(self) -> None:
        """Consume requests until cancelled."""
        while True:
            request = await self._queue.get()
            PROVISION_QUEUE_SIZE.labels(template=self.template.name).set(self._queue.qsize())
            try:
                await self._handle(request)
            finally:
                self._queue.task_done()

    async def _handle(self, request: ProvisionRequest) -> None:
        if request.future.done():
            # caller gave up while queued
            return
        try:
            nodes = await self._reconciler.provision(request.number, request.options)
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as exc:
            if not request.future.done():
                request.future.set_exception(exc)
            return

        if not request.future.done():
            request.future.set_result(nodes)
        if nodes and self._supervisor is not None:
            for node in nodes:
                self._spawn_launch(node)

    def _spawn_launch(self, node: WorkerNode) -> None:
        task = asyncio.create_task(self._supervisor.launch(node), name=f"launch:{node.name}")
        self._launches.add(task)
        task.add_done_callback(self._launches.discard)

    async def stop(self) -> None:
        """Cancel the consumer and in-flight launches, failing queued requests."""
        tasks = list(self._launches)
        if self._task is not None:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None

        while not self._queue.empty():
            request = self._queue.get_nowait()
            request.future.cancel()
            self._queue.task_done()
        PROVISION_QUEUE_SIZE.labels(template=self.template.name).set(0)


class ProvisionerPool:
    """One TemplateWorker per configured template, addressed by name."""

    def __init__(self, workers: list[TemplateWorker]) -> None:
        self._workers = {w.template.name: w for w in workers}

    @property
    def templates(self) -> list[Template]:
        return [w.template for w in self._workers.values()]

    def get(self, name: str) -> TemplateWorker:
        try:
            return self._workers[name]
        except KeyError:
            raise TemplateNotFoundError(f"Template {name!r} not found") from None

    def start(self) -> None:
        for worker in self._workers.values():
            worker.start()
        logger.info(
            "Provisioner workers started",
            extra={
                "event": LogEvent.APP_STARTED,
                "component": Component.PROVISIONER,
                "templates": list(self._workers),
            },
        )

    async def stop(self) -> None:
        await asyncio.gather(*(w.stop() for w in self._workers.values()))
        logger.info(
            "Provisioner workers stopped",
            extra={"event": LogEvent.APP_STOPPED, "component": Component.PROVISIONER},
        )

    async def provision(
        self,
        name: str,
        number: int,
        options: frozenset[ProvisionOption] = frozenset(),
    ) -> list[WorkerNode] | None:
        return await self.get(name).submit(number, options)
