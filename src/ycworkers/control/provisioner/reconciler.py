"""ProvisioningReconciler - turns a demand for N workers into cloud operations.

Reconcile steps (strictly sequential, one gateway call at a time):
1. Resolve the signing key (hard precondition, nothing touched without it)
2. Snapshot the template's instances and pick orphans
3. Reuse-only and no orphan → return None
4. Wake STOPPED orphans (best-effort)
5. Orphans satisfy demand → register the first one
6. Otherwise create one instance if none exists under the filter
7. Re-list and register the first instance

At most one worker is registered and at most one instance is created per
call, whatever ``number`` is. Demand beyond that is met by later calls.
The instance cap is checked before every create and every registration; a
worker that replaces one bound to the same instance does not count twice.
"""

import logging
import time

from ycworkers.app.config import CloudConfig, get_settings
from ycworkers.app.logging import clear_trace_context, set_template_context, set_trace_id
from ycworkers.app.metrics.collector import (
    INSTANCES_CREATED_TOTAL,
    INSTANCES_WOKEN_TOTAL,
    ORPHANS_FOUND,
    PROVISION_DURATION,
    PROVISION_REQUESTS_TOTAL,
)
from ycworkers.control.provisioner.bootstrap import build_create_request, render_user_data
from ycworkers.control.provisioner.orphans import SnapshotReader, classify
from ycworkers.core.domain.instance import CREATE_OPTIONS, ProvisionOption
from ycworkers.core.errors import CredentialError, ProvisioningError, YcWorkersError
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.keys import KeyProvider, SigningKey
from ycworkers.core.interfaces.registry import LiveWorkerLookup, WorkerRegistrar
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.instance import CloudInstance
from ycworkers.core.models.template import Template
from ycworkers.core.models.worker import WorkerNode

logger = logging.getLogger(__name__)

_logging_config = get_settings().logging


def instance_filter_for(cloud: CloudConfig) -> str:
    """Compute API filter matching instances created for this cloud."""
    return f'name="{cloud.name}"'


class ProvisioningReconciler:
    """Reconciles demand for one template.

    Not safe to call concurrently for the same template; TemplateWorker
    serializes calls.
    """

    def __init__(
        self,
        template: Template,
        cloud: CloudConfig,
        gateway: CloudGateway,
        keys: KeyProvider,
        lookup: LiveWorkerLookup,
        registrar: WorkerRegistrar,
    ) -> None:
        self._template = template
        self._cloud = cloud
        self._gateway = gateway
        self._keys = keys
        self._lookup = lookup
        self._registrar = registrar
        self._snapshots = SnapshotReader(gateway)
        self._filter = instance_filter_for(cloud)

    @property
    def template(self) -> Template:
        return self._template

    async def provision(
        self,
        number: int,
        options: frozenset[ProvisionOption] = frozenset(),
    ) -> list[WorkerNode] | None:
        """Reconcile a demand for ``number`` workers.

        Returns:
            A one-element list of registered workers, or None when no orphan
            exists and options forbid creating one (or the cap is reached)

        Raises:
            ValueError: number < 1
            CredentialError: no signing key
            ProvisioningError: the create operation failed, or nothing to
                register after creating
            CloudGatewayError: the create guard listing failed
        """
        if number < 1:
            raise ValueError(f"number must be positive, got {number}")

        set_trace_id()
        set_template_context(self._template.name)
        start = time.monotonic()
        result = "error"
        try:
            nodes, result = await self._reconcile(number, options)
            return nodes
        except YcWorkersError as exc:
            logger.error(
                "Provisioning failed: %s",
                exc.message,
                extra={
                    "event": LogEvent.PROVISION_FAILED,
                    "component": Component.PROVISIONER,
                    "error_code": exc.code.value,
                    "number": number,
                },
            )
            raise
        finally:
            duration = time.monotonic() - start
            duration_ms = duration * 1000
            PROVISION_DURATION.labels(template=self._template.name).observe(duration)
            PROVISION_REQUESTS_TOTAL.labels(template=self._template.name, result=result).inc()
            if duration_ms > _logging_config.slow_threshold_ms:
                logger.warning(
                    "Slow provisioning: %.0fms",
                    duration_ms,
                    extra={
                        "event": LogEvent.PROVISION_SLOW,
                        "duration_ms": duration_ms,
                        "threshold_ms": _logging_config.slow_threshold_ms,
                    },
                )
            clear_trace_context()

    async def _reconcile(
        self,
        number: int,
        options: frozenset[ProvisionOption],
    ) -> tuple[list[WorkerNode] | None, str]:
        key = self._keys.resolve_signing_key()
        if key is None:
            raise CredentialError()

        logger.info(
            "Provisioning %d worker(s)",
            number,
            extra={
                "event": LogEvent.PROVISION_STARTED,
                "number": number,
                "options": sorted(options),
            },
        )

        snapshot = await self._snapshots.read(self._filter)
        orphans = classify(snapshot, self._lookup.live_workers(), number)
        ORPHANS_FOUND.labels(template=self._template.name).set(len(orphans))
        if orphans:
            logger.info(
                "Found %d orphan instance(s)",
                len(orphans),
                extra={
                    "event": LogEvent.ORPHANS_FOUND,
                    "instance_ids": [i.id for i in orphans],
                },
            )

        if not orphans and not (options & CREATE_OPTIONS):
            logger.info(
                "No existing instance found - but cannot create new instance",
                extra={"event": LogEvent.PROVISION_SKIPPED, "number": number},
            )
            return None, "skipped"

        await self._wake(orphans)

        if len(orphans) == number:
            if self._cap_reached(orphans[0]):
                return None, "cap_reached"
            return [self._register(orphans[0])], "reused"

        result = "existing"
        need_create = number - len(orphans)
        existing = await self._gateway.list_instances(self._filter)
        if need_create > 0 and not existing:
            if self._cap_reached():
                return None, "cap_reached"
            await self._create(key)
            result = "created"

        instances = await self._gateway.list_instances(self._filter)
        if not instances:
            raise ProvisioningError(f"No instance found under filter {self._filter}")
        if self._cap_reached(instances[0]):
            return None, "cap_reached"
        return [self._register(instances[0])], result

    async def _wake(self, orphans: list[CloudInstance]) -> None:
        for instance in orphans:
            if not instance.is_stopped:
                continue
            try:
                await self._gateway.start_instance(instance.id)
            except Exception as exc:
                INSTANCES_WOKEN_TOTAL.labels(template=self._template.name, result="error").inc()
                logger.warning(
                    "Failed to wake instance %s: %s",
                    instance.id,
                    exc,
                    extra={"event": LogEvent.INSTANCE_WAKE, "instance_id": instance.id},
                )
                continue
            INSTANCES_WOKEN_TOTAL.labels(template=self._template.name, result="success").inc()
            logger.info(
                "Woke stopped instance %s",
                instance.id,
                extra={"event": LogEvent.INSTANCE_WAKE, "instance_id": instance.id},
            )

    def _cap_reached(self, candidate: CloudInstance | None = None) -> bool:
        """True if binding one more instance would exceed the template's cap.

        A worker already bound to ``candidate`` is about to be replaced, not
        added, so it does not count.
        """
        cap = self._template.instance_cap
        if cap is None:
            return False
        replaced = candidate.id if candidate is not None else None
        bound = sum(
            1
            for n in self._lookup.live_workers()
            if n.template_name == self._template.name and n.instance_id != replaced
        )
        if bound < cap:
            return False
        logger.warning(
            "Instance cap reached (%d/%d), not binding another worker",
            bound,
            cap,
            extra={"event": LogEvent.CAP_REACHED, "bound": bound, "cap": cap},
        )
        return True

    async def _create(self, key: SigningKey) -> None:
        user_data = render_user_data(self._template.remote_admin, key.public_fingerprint)
        request = build_create_request(self._cloud.init_vm_template, self._cloud, user_data)

        operation = await self._gateway.create_instance(request)
        if operation.error_message:
            INSTANCES_CREATED_TOTAL.labels(template=self._template.name, result="error").inc()
            raise ProvisioningError(operation.error_message)

        INSTANCES_CREATED_TOTAL.labels(template=self._template.name, result="success").inc()
        logger.info(
            "Create instance requested",
            extra={
                "event": LogEvent.INSTANCE_CREATED,
                "operation_id": operation.id,
                "instance_id": operation.resource_id,
            },
        )

    def _register(self, instance: CloudInstance) -> WorkerNode:
        logger.info(
            "Return instance %s",
            instance.id,
            extra={
                "event": LogEvent.PROVISION_COMPLETE,
                "instance_id": instance.id,
                "status": instance.status.value,
            },
        )
        return self._registrar.register(instance, self._template)
