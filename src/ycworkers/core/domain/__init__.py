"""Domain enums."""

from ycworkers.core.domain.instance import (
    CREATE_OPTIONS,
    TERMINAL_LAUNCH_STATES,
    InstanceStatus,
    LaunchState,
    NodeMode,
    ProvisionOption,
)

__all__ = [
    "CREATE_OPTIONS",
    "TERMINAL_LAUNCH_STATES",
    "InstanceStatus",
    "LaunchState",
    "NodeMode",
    "ProvisionOption",
]
