"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets (optimized by latency category)
# =============================================================================

# MEDIUM: Compute API calls (5ms ~ 60s)
_BUCKETS_MEDIUM = (
    0.005, 0.01, 0.02, 0.04, 0.09,
    0.18, 0.36, 0.73, 1.5, 3,
    6.2, 12.7, 26, 53,
)  # 14 buckets

# SLOW: whole reconciliations and launches (100ms ~ 10min)
_BUCKETS_SLOW = (
    0.1, 0.25, 0.5, 1, 2.5,
    5, 10, 30, 60, 120,
    300, 600,
)  # 12 buckets

# =============================================================================
# Provisioning
# =============================================================================

PROVISION_REQUESTS_TOTAL = Counter(
    "ycworkers_provision_requests_total",
    "Provisioning reconciliations by outcome",
    ["template", "result"],  # result: reused, created, existing, skipped, error
)

PROVISION_DURATION = Histogram(
    "ycworkers_provision_duration_seconds",
    "Duration of one provisioning reconciliation",
    ["template"],
    buckets=_BUCKETS_SLOW,
)

PROVISION_QUEUE_SIZE = Gauge(
    "ycworkers_provision_queue_size",
    "Pending provisioning requests per template",
    ["template"],
)

ORPHANS_FOUND = Gauge(
    "ycworkers_orphans_found",
    "Orphan instances found by the last reconciliation",
    ["template"],
)

INSTANCES_WOKEN_TOTAL = Counter(
    "ycworkers_instances_woken_total",
    "Start requests issued for stopped orphan instances",
    ["template", "result"],  # result: success, error
)

INSTANCES_CREATED_TOTAL = Counter(
    "ycworkers_instances_created_total",
    "Create requests issued",
    ["template", "result"],  # result: success, error
)

# =============================================================================
# Launch
# =============================================================================

LAUNCH_TOTAL = Counter(
    "ycworkers_launch_total",
    "Agent launches by final state",
    ["template", "state"],  # state: CONNECTED, TERMINATED
)

LAUNCH_DURATION = Histogram(
    "ycworkers_launch_duration_seconds",
    "Duration of an agent launch attempt",
    ["template"],
    buckets=_BUCKETS_SLOW,
)

INSTANCES_TERMINATED_TOTAL = Counter(
    "ycworkers_instances_terminated_total",
    "Instances terminated after a failed launch",
    ["result"],  # result: success, error
)

WORKERS_REGISTERED = Gauge(
    "ycworkers_workers_registered",
    "Worker nodes currently registered",
)

# =============================================================================
# Cloud API
# =============================================================================

CLOUD_API_DURATION = Histogram(
    "ycworkers_cloud_api_duration_seconds",
    "Compute API call duration",
    ["operation"],
    buckets=_BUCKETS_MEDIUM,
)

CLOUD_API_ERRORS_TOTAL = Counter(
    "ycworkers_cloud_api_errors_total",
    "Compute API call failures after transport retries",
    ["operation", "error_class"],
)

# =============================================================================
# Circuit Breaker
# =============================================================================

CIRCUIT_BREAKER_STATE = Gauge(
    "ycworkers_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["circuit"],
)

CIRCUIT_BREAKER_CALLS_TOTAL = Counter(
    "ycworkers_circuit_breaker_calls_total",
    "Calls through the circuit breaker",
    ["circuit", "result"],  # result: success, failure
)

CIRCUIT_BREAKER_REJECTIONS_TOTAL = Counter(
    "ycworkers_circuit_breaker_rejections_total",
    "Calls rejected by an open circuit",
    ["circuit"],
)

# =============================================================================
# HTTP
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "ycworkers_http_requests_total",
    "HTTP requests to the control API",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "ycworkers_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=_BUCKETS_SLOW,
)
