"""Provisioning: orphan matching, reconciliation and per-template workers."""

from ycworkers.control.provisioner.bootstrap import build_create_request, render_user_data
from ycworkers.control.provisioner.orphans import SnapshotReader, classify
from ycworkers.control.provisioner.reconciler import ProvisioningReconciler
from ycworkers.control.provisioner.worker import ProvisionerPool, TemplateWorker

__all__ = [
    "ProvisionerPool",
    "ProvisioningReconciler",
    "SnapshotReader",
    "TemplateWorker",
    "build_create_request",
    "classify",
    "render_user_data",
]
