"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (yc-workers)
- event: Event type (provision_complete, launch_failed, etc.)
- trace_id: Per-reconciliation trace ID
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- instance_id: Cloud instance ID
- node: Worker node name
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types for the 'event' extra field."""

    # Provisioning events
    PROVISION_STARTED = "provision_started"
    PROVISION_COMPLETE = "provision_complete"
    PROVISION_SKIPPED = "provision_skipped"
    PROVISION_FAILED = "provision_failed"
    PROVISION_SLOW = "provision_slow"
    ORPHANS_FOUND = "orphans_found"
    INSTANCE_WAKE = "instance_wake"
    INSTANCE_CREATED = "instance_created"
    CAP_REACHED = "cap_reached"

    # Launch events
    LAUNCH_STARTED = "launch_started"
    LAUNCH_CONNECTED = "launch_connected"
    LAUNCH_FAILED = "launch_failed"
    INSTANCE_TERMINATED = "instance_terminated"
    CLEANUP_FAILED = "cleanup_failed"

    # Gateway events
    GATEWAY_ERROR = "gateway_error"
    STATE_CHANGED = "state_changed"
    OPERATION_FAILED = "operation_failed"

    # Registry events
    WORKER_REGISTERED = "worker_registered"
    WORKER_REMOVED = "worker_removed"

    # Request events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    CONFIG_LOADED = "config_loaded"


class ErrorClass(StrEnum):
    """Error classification for structured error logging."""

    TRANSIENT = "transient"  # Retryable (network timeout, temp failure)
    PERMANENT = "permanent"  # Not retryable (invalid input, not found)
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"


class Component(StrEnum):
    """Component identifiers for log filtering."""

    PROVISIONER = "provisioner"
    LAUNCHER = "launcher"
    GATEWAY = "gateway"
    REGISTRY = "registry"
    API = "api"
