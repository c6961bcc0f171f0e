"""Cloud instance snapshot models (Compute REST API shapes)."""

from typing import Any

from pydantic import BaseModel

from ycworkers.core.domain.instance import InstanceStatus

UNKNOWN_ADDRESS = "0.0.0.0"


class NetworkInterface(BaseModel):
    """Instance network interface, reduced to its primary IPv4 address."""

    index: str = "0"
    primary_v4_address: str | None = None

    model_config = {"frozen": True}


class CloudInstance(BaseModel):
    """Point-in-time view of a compute instance. May be stale."""

    id: str
    name: str = ""
    status: InstanceStatus = InstanceStatus.UNKNOWN
    network_interfaces: tuple[NetworkInterface, ...] = ()

    model_config = {"frozen": True}

    @property
    def is_stopped(self) -> bool:
        return self.status == InstanceStatus.STOPPED

    @property
    def primary_ipv4(self) -> str:
        """First interface's primary IPv4 address, or 0.0.0.0 when unknown."""
        for nic in self.network_interfaces:
            return nic.primary_v4_address or UNKNOWN_ADDRESS
        return UNKNOWN_ADDRESS

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CloudInstance":
        """Create from a Compute API instance resource."""
        nics = tuple(
            NetworkInterface(
                index=str(nic.get("index", "0")),
                primary_v4_address=(nic.get("primaryV4Address") or {}).get("address"),
            )
            for nic in data.get("networkInterfaces", [])
        )
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            status=InstanceStatus.parse(data.get("status")),
            network_interfaces=nics,
        )


class OperationError(BaseModel):
    """google.rpc.Status carried by a failed operation."""

    code: int = 0
    message: str = ""

    model_config = {"frozen": True}


class OperationResult(BaseModel):
    """Long-running operation returned by mutating Compute calls."""

    id: str = ""
    description: str = ""
    done: bool = False
    error: OperationError | None = None
    resource_id: str | None = None

    model_config = {"frozen": True}

    @property
    def error_message(self) -> str:
        return self.error.message if self.error else ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "OperationResult":
        error = data.get("error")
        metadata = data.get("metadata") or {}
        return cls(
            id=data.get("id", ""),
            description=data.get("description", ""),
            done=bool(data.get("done", False)),
            error=OperationError(**error) if error else None,
            resource_id=metadata.get("instanceId"),
        )
