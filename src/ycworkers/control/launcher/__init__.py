"""Agent launch supervision."""

from ycworkers.control.launcher.supervisor import OFFLINE_REASON, LaunchSupervisor

__all__ = ["OFFLINE_REASON", "LaunchSupervisor"]
