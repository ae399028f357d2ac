from __future__ import annotations

from prometheus_client import Counter

RESOURCE_OPERATIONS_TOTAL = Counter(
    "commonrest_resource_operations_total",
    "Resource operations completed, by resource and operation",
    ["resource", "operation"],
)

SEQUENCE_VALUES_TOTAL = Counter(
    "commonrest_sequence_values_total",
    "Auto-increment values issued",
    ["resource", "field"],
)

SEQUENCE_FAILURES_TOTAL = Counter(
    "commonrest_sequence_failures_total",
    "Auto-increment requests that failed because the counter store was unavailable",
    ["resource", "field"],
)


def inc_operation(resource: str, operation: str, value: int = 1) -> None:
    if value <= 0:
        return
    RESOURCE_OPERATIONS_TOTAL.labels(resource=resource, operation=operation).inc(value)
