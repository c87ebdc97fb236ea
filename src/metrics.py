"""Prometheus metrics for the Pangolin ingress operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "pangolin_operator_reconcile_total",
    "Total number of reconciliations",
    ["operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "pangolin_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "pangolin_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# Pangolin API metrics
PANGOLIN_API_CALLS = Counter(
    "pangolin_operator_api_calls_total",
    "Total number of Pangolin API calls",
    ["operation", "status"],
)

PANGOLIN_API_DURATION = Histogram(
    "pangolin_operator_api_duration_seconds",
    "Time spent in Pangolin API calls",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

RATE_LIMIT_WAIT_SECONDS = Histogram(
    "pangolin_operator_rate_limit_wait_seconds",
    "Time spent waiting for rate limit slot",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

STALE_TARGETS_DELETED = Counter(
    "pangolin_operator_stale_targets_deleted_total",
    "Total number of stale targets removed from Pangolin resources",
    ["status"],
)

# Work queue metrics
WORKQUEUE_DEPTH = Gauge(
    "pangolin_operator_workqueue_depth",
    "Number of keys waiting in the work queue",
)

WORKQUEUE_RETRIES = Counter(
    "pangolin_operator_workqueue_retries_total",
    "Total number of keys re-queued with backoff",
)

# Operator info
OPERATOR_INFO = Info(
    "pangolin_operator",
    "Information about the Pangolin ingress operator",
)


def set_operator_info(version: str, ingress_class: str, org_id: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info(
        {"version": version, "ingress_class": ingress_class, "org_id": org_id}
    )


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["reconcile", "delete"]
    statuses = ["success", "error"]

    RECONCILE_IN_PROGRESS.set(0)
    WORKQUEUE_DEPTH.set(0)
    for operation in operations:
        RECONCILE_DURATION.labels(operation=operation)
        for status in statuses:
            RECONCILE_TOTAL.labels(operation=operation, status=status)

    for status in statuses:
        STALE_TARGETS_DELETED.labels(status=status)
