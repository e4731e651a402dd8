"""Custom metrics for the group order service."""

from opentelemetry import metrics

meter = metrics.get_meter("group-order-svc")

remote_failure_counter = meter.create_counter(
    name="remote_store_failure_total",
    description="Total number of failed remote store calls by operation",
    unit="1",
)

cache_refresh_counter = meter.create_counter(
    name="cache_refresh_total",
    description="Total number of cache collection refreshes by collection",
    unit="1",
)

cache_refresh_duration_histogram = meter.create_histogram(
    name="cache_refresh_duration_seconds",
    description="Duration of cache collection refreshes",
    unit="s",
)

change_notification_counter = meter.create_counter(
    name="change_notification_total",
    description="Total number of change notifications received by table",
    unit="1",
)


def record_remote_failure(operation: str) -> None:
    """Record a failed remote store call.

    Args:
        operation: State store operation that failed (e.g., "create_order")
    """
    remote_failure_counter.add(1, {"operation": operation})


def record_cache_refresh(collection: str, duration_seconds: float) -> None:
    """Record a wholesale refresh of a cached collection.

    Args:
        collection: The refreshed collection ("orders" or "menu_items")
        duration_seconds: Fetch duration in seconds
    """
    cache_refresh_counter.add(1, {"collection": collection})
    cache_refresh_duration_histogram.record(duration_seconds, {"collection": collection})


def record_change_notification(table: str) -> None:
    """Record a change notification from the remote store.

    Args:
        table: Table that reported a change
    """
    change_notification_counter.add(1, {"table": table})
