"""Core interfaces."""

from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.keys import KeyProvider, SigningKey
from ycworkers.core.interfaces.launch import Launchable
from ycworkers.core.interfaces.registry import LiveWorkerLookup, WorkerRegistrar

__all__ = [
    "CloudGateway",
    "KeyProvider",
    "Launchable",
    "LiveWorkerLookup",
    "SigningKey",
    "WorkerRegistrar",
]
