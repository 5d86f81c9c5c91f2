from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

split_total = Counter(
    "relations_split_total",
    "Number of tickets successfully split.",
)
merge_total = Counter(
    "relations_merge_total",
    "Number of successful merge operations.",
)
merged_tickets_total = Counter(
    "relations_merged_tickets_total",
    "Number of tickets absorbed into a primary ticket.",
)
relationship_created_total = Counter(
    "relations_relationship_created_total",
    "Number of manually created ticket relationships.",
    labelnames=("relationship_type",),
)
relationship_removed_total = Counter(
    "relations_relationship_removed_total",
    "Number of removed ticket relationships.",
)
failed_total = Counter(
    "relations_failed_total",
    "Number of failed relationship operations.",
    labelnames=("operation", "code"),
)
conflict_retries_total = Counter(
    "relations_conflict_retries_total",
    "Number of operation restarts after a concurrent modification.",
    labelnames=("operation",),
)
audit_reply_failed_total = Counter(
    "relations_audit_reply_failed_total",
    "Number of audit replies that could not be appended after a committed operation.",
    labelnames=("operation",),
)

operation_seconds = Histogram(
    "relations_operation_seconds",
    "Seconds spent in a relationship operation end-to-end.",
    labelnames=("operation",),
)


def render_latest(*, registry=REGISTRY) -> tuple[bytes, str]:
    return generate_latest(registry), CONTENT_TYPE_LATEST
