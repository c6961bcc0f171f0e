"""Core models."""

from ycworkers.core.models.instance import (
    CloudInstance,
    NetworkInterface,
    OperationError,
    OperationResult,
)
from ycworkers.core.models.template import Tag, Template, build_template, load_templates
from ycworkers.core.models.worker import WorkerConfig, WorkerNode

__all__ = [
    "CloudInstance",
    "NetworkInterface",
    "OperationError",
    "OperationResult",
    "Tag",
    "Template",
    "WorkerConfig",
    "WorkerNode",
    "build_template",
    "load_templates",
]
