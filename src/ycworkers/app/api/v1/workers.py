"""Worker node API endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from ycworkers.app.api.dependencies import Registry
from ycworkers.core.models.worker import WorkerNode

router = APIRouter(prefix="/workers", tags=["workers"])


class WorkerResponse(BaseModel):
    """Registered worker node and its launch state."""

    name: str
    instance_id: str
    template_name: str
    launch_state: str
    accepting_tasks: bool
    temporarily_offline: bool
    offline_reason: str | None
    launch_timeout_at: datetime
    created_at: datetime

    @classmethod
    def from_node(cls, node: WorkerNode) -> "WorkerResponse":
        return cls(
            name=node.name,
            instance_id=node.instance_id,
            template_name=node.template_name,
            launch_state=node.launch_state.value,
            accepting_tasks=node.accepting_tasks,
            temporarily_offline=node.temporarily_offline,
            offline_reason=node.offline_reason,
            launch_timeout_at=node.config.launch_timeout_at,
            created_at=node.created_at,
        )


class WorkerListResponse(BaseModel):
    items: list[WorkerResponse]
    total: int


@router.get("", response_model=WorkerListResponse)
async def list_workers(registry: Registry) -> WorkerListResponse:
    items = [WorkerResponse.from_node(n) for n in registry.live_workers()]
    return WorkerListResponse(items=items, total=len(items))
