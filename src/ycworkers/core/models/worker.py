"""Worker node models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel

from ycworkers.core.domain.instance import LaunchState, NodeMode
from ycworkers.core.models.instance import CloudInstance
from ycworkers.core.models.template import Template

if TYPE_CHECKING:
    from ycworkers.core.interfaces.launch import Launchable


class WorkerConfig(BaseModel):
    """Template fields copied at registration time.

    A copy, not a reference: editing the template later does not change
    agents that are already running.
    """

    name: str
    instance_id: str
    template_name: str
    cloud_name: str
    description: str = ""
    mode: NodeMode = NodeMode.NORMAL
    label_string: str = ""
    init_script: str = ""
    remote_admin: str = ""
    stop_on_terminate: bool = False
    idle_termination_minutes: int | None = None
    node_properties: dict[str, str] = {}
    launch_timeout_at: datetime

    model_config = {"frozen": True}

    @property
    def admin_user(self) -> str:
        return self.remote_admin or "root"

    @classmethod
    def from_template(
        cls,
        instance: CloudInstance,
        template: Template,
        cloud_name: str,
        launch_timeout_s: float,
    ) -> "WorkerConfig":
        return cls(
            name=instance.name or instance.id,
            instance_id=instance.id,
            template_name=template.name,
            cloud_name=cloud_name,
            description=template.description,
            mode=template.mode,
            label_string=template.label_string,
            init_script=template.init_script,
            remote_admin=template.remote_admin,
            stop_on_terminate=template.stop_on_terminate,
            idle_termination_minutes=template.idle_termination_minutes,
            node_properties=dict(template.node_properties),
            launch_timeout_at=datetime.now(UTC) + timedelta(seconds=launch_timeout_s),
        )


@dataclass(eq=False)
class WorkerNode:
    """Host-side worker bound to one cloud instance.

    launcher is the transport-specific handshake; the supervisor only knows
    it as a Launchable.
    """

    config: WorkerConfig
    launcher: "Launchable | None" = None
    launch_state: LaunchState = LaunchState.PENDING_LAUNCH
    accepting_tasks: bool = True
    temporarily_offline: bool = False
    offline_reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    @property
    def template_name(self) -> str:
        return self.config.template_name

    def set_accepting_tasks(self, accepting: bool) -> None:
        self.accepting_tasks = accepting

    def set_temporarily_offline(self, offline: bool, reason: str | None = None) -> None:
        self.temporarily_offline = offline
        self.offline_reason = reason if offline else None
