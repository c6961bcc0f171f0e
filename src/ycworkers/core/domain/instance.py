"""Instance and worker domain enums."""

from enum import StrEnum


class InstanceStatus(StrEnum):
    """Compute instance status as reported by the provider.

    Only RUNNING and STOPPED drive decisions; everything else is opaque.
    """

    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RESTARTING = "RESTARTING"
    UPDATING = "UPDATING"
    ERROR = "ERROR"
    CRASHED = "CRASHED"
    DELETING = "DELETING"
    UNKNOWN = "STATUS_UNSPECIFIED"

    @classmethod
    def parse(cls, value: str | None) -> "InstanceStatus":
        try:
            return cls(value or "")
        except ValueError:
            return cls.UNKNOWN


class ProvisionOption(StrEnum):
    """Whether a reconciliation may create instances when no orphan exists.

    An empty option set means reuse-only.
    """

    ALLOW_CREATE = "ALLOW_CREATE"
    FORCE_CREATE = "FORCE_CREATE"


CREATE_OPTIONS = frozenset({ProvisionOption.ALLOW_CREATE, ProvisionOption.FORCE_CREATE})


class NodeMode(StrEnum):
    """Scheduling mode of a worker node."""

    NORMAL = "NORMAL"  # take any job
    EXCLUSIVE = "EXCLUSIVE"  # only jobs whose label expression matches


class LaunchState(StrEnum):
    """Launch supervisor state per worker node."""

    PENDING_LAUNCH = "PENDING_LAUNCH"
    CONNECTED = "CONNECTED"
    FAILED_CLEANUP = "FAILED_CLEANUP"
    TERMINATED = "TERMINATED"


TERMINAL_LAUNCH_STATES = frozenset({LaunchState.CONNECTED, LaunchState.TERMINATED})
