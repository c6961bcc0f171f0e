"""Request-scoped access to the objects wired up in the app lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from ycworkers.adapters.registry import NodeRegistry
from ycworkers.control.provisioner import ProvisionerPool


def get_pool(request: Request) -> ProvisionerPool:
    return request.app.state.pool


def get_registry(request: Request) -> NodeRegistry:
    return request.app.state.registry


Pool = Annotated[ProvisionerPool, Depends(get_pool)]
Registry = Annotated[NodeRegistry, Depends(get_registry)]
