"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ycworkers import __version__
from ycworkers.adapters.gateway import YandexCloudGateway
from ycworkers.adapters.gateway.yandex import CIRCUIT_NAME
from ycworkers.adapters.keys import FileKeyProvider
from ycworkers.adapters.launch import SshLauncher
from ycworkers.adapters.registry import NodeRegistry
from ycworkers.app.api.v1 import templates_router, workers_router
from ycworkers.app.config import Settings, get_settings
from ycworkers.app.logging import setup_logging
from ycworkers.app.metrics import get_metrics_response
from ycworkers.app.middleware import LoggingMiddleware
from ycworkers.control.launcher import LaunchSupervisor
from ycworkers.control.provisioner import ProvisionerPool, ProvisioningReconciler, TemplateWorker
from ycworkers.core.circuit_breaker import CircuitState, get_circuit_breaker
from ycworkers.core.errors import YcWorkersError
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.keys import KeyProvider
from ycworkers.core.logging_schema import LogEvent
from ycworkers.core.models.template import Template, load_templates

setup_logging()
logger = logging.getLogger(__name__)


def _load_templates(settings: Settings) -> list[Template]:
    path = settings.provisioner.templates_file
    if not path:
        logger.warning(
            "No templates file configured, nothing to provision",
            extra={"event": LogEvent.CONFIG_LOADED},
        )
        return []
    templates = load_templates(path)
    logger.info(
        "Loaded %d template(s)",
        len(templates),
        extra={"event": LogEvent.CONFIG_LOADED, "templates": [t.name for t in templates]},
    )
    return templates


def build_pool(
    settings: Settings,
    templates: list[Template],
    gateway: CloudGateway,
    keys: KeyProvider,
    registry: NodeRegistry,
) -> ProvisionerPool:
    """Wire one reconciler and worker per template."""
    supervisor = None
    if settings.provisioner.launch_on_provision:
        supervisor = LaunchSupervisor(gateway, registry, registry, settings.launch.timeout_s)

    workers = [
        TemplateWorker(
            ProvisioningReconciler(
                template=template,
                cloud=settings.cloud,
                gateway=gateway,
                keys=keys,
                lookup=registry,
                registrar=registry,
            ),
            supervisor=supervisor,
            queue_maxsize=settings.provisioner.queue_maxsize,
        )
        for template in templates
    ]
    return ProvisionerPool(workers)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()

    gateway = YandexCloudGateway(settings.gateway, settings.cloud.folder_id)
    keys = FileKeyProvider(settings.ssh_key.private_key_path, settings.ssh_key.passphrase)
    launcher = SshLauncher(gateway, keys, settings.launch)
    registry = NodeRegistry(settings.cloud.name, settings.launch.timeout_s, launcher)
    pool = build_pool(settings, _load_templates(settings), gateway, keys, registry)

    app.state.registry = registry
    app.state.pool = pool
    pool.start()

    logger.info(
        "Starting application",
        extra={"event": LogEvent.APP_STARTED, "cloud": settings.cloud.name},
    )

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    await pool.stop()
    await gateway.close()


app = FastAPI(title="yc-workers", version=__version__, lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(YcWorkersError)
async def ycworkers_error_handler(request: Request, exc: YcWorkersError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


app.include_router(templates_router, prefix="/api/v1")
app.include_router(workers_router, prefix="/api/v1")


@app.get("/health")
async def health():
    circuit = get_circuit_breaker(CIRCUIT_NAME).state
    return {
        "status": "degraded" if circuit == CircuitState.OPEN else "ok",
        "version": __version__,
        "cloud_circuit": circuit.value,
    }


@app.get("/metrics")
async def metrics():
    if not get_settings().metrics.enabled:
        return JSONResponse(status_code=404, content={"detail": "Metrics disabled"})
    return get_metrics_response()
