"""
Prometheus metrics: order transitions (applied / rejected), gamification updates, access denials, store failures.
"""
from prometheus_client import Counter, generate_latest

order_transitions_total = Counter(
    "order_transitions_total",
    "Total order status transitions committed",
    ["from_status", "to_status"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order status transitions rejected",
    ["reason", "to_status"],
)
gamification_updates_total = Counter(
    "gamification_updates_total",
    "Total gamification accumulators updated by delivered orders",
)
access_denied_total = Counter(
    "access_denied_total",
    "Total role-gated access checks that denied the caller",
    ["required_role"],
)
store_transient_errors_total = Counter(
    "store_transient_errors_total",
    "Total store calls that failed with a transient error (timeout, connection lost)",
    ["store"],
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
