"""Template and provisioning API endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ycworkers.app.api.dependencies import Pool
from ycworkers.app.api.v1.workers import WorkerResponse
from ycworkers.core.domain.instance import ProvisionOption
from ycworkers.core.models.template import Template

router = APIRouter(prefix="/templates", tags=["templates"])


# =============================================================================
# Request/Response Models
# =============================================================================


class TemplateResponse(BaseModel):
    name: str
    description: str
    mode: str
    labels: list[str]
    remote_admin: str
    idle_termination_minutes: int | None
    stop_on_terminate: bool
    instance_cap: int | None
    pending_requests: int

    @classmethod
    def from_template(cls, template: Template, pending: int) -> "TemplateResponse":
        return cls(
            name=template.name,
            description=template.description,
            mode=template.mode.value,
            labels=sorted(template.labels),
            remote_admin=template.admin_user,
            idle_termination_minutes=template.idle_termination_minutes,
            stop_on_terminate=template.stop_on_terminate,
            instance_cap=template.instance_cap,
            pending_requests=pending,
        )


class TemplateListResponse(BaseModel):
    items: list[TemplateResponse]
    total: int


class ProvisionBody(BaseModel):
    """Demand for workers. Without either flag only idle instances are reused."""

    number: int = Field(default=1, ge=1)
    allow_create: bool = False
    force_create: bool = False

    def options(self) -> frozenset[ProvisionOption]:
        options = set()
        if self.allow_create:
            options.add(ProvisionOption.ALLOW_CREATE)
        if self.force_create:
            options.add(ProvisionOption.FORCE_CREATE)
        return frozenset(options)


class ProvisionResponse(BaseModel):
    """Registered workers, or null when nothing could be reused or created."""

    workers: list[WorkerResponse] | None


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=TemplateListResponse)
async def list_templates(pool: Pool) -> TemplateListResponse:
    items = [
        TemplateResponse.from_template(t, pool.get(t.name).pending) for t in pool.templates
    ]
    return TemplateListResponse(items=items, total=len(items))


@router.post("/{name}/provision", response_model=ProvisionResponse)
async def provision(name: str, body: ProvisionBody, pool: Pool) -> ProvisionResponse:
    """Reconcile a demand for workers of one template.

    Launches run in the background; poll /workers for their state.
    """
    nodes = await pool.provision(name, body.number, body.options())
    if nodes is None:
        return ProvisionResponse(workers=None)
    return ProvisionResponse(workers=[WorkerResponse.from_node(n) for n in nodes])
