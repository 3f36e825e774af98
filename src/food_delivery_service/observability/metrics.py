"""Custom metrics for the food delivery service."""

from opentelemetry import metrics

# Get meter for the order service
meter = metrics.get_meter("food-delivery-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of orders created",
    unit="1",
)

order_rejections_counter = meter.create_counter(
    name="order_rejections_total",
    description="Total number of order creations rejected by catalog checks",
    unit="1",
)

tracking_updates_counter = meter.create_counter(
    name="tracking_updates_total",
    description="Total number of tracking writes by tracking status",
    unit="1",
)

broadcast_failure_counter = meter.create_counter(
    name="broadcast_failures_total",
    description="Total number of real-time events that could not be delivered",
    unit="1",
)

# Connected WebSocket clients
active_connections = meter.create_up_down_counter(
    name="realtime_active_connections",
    description="Current number of connected real-time clients",
    unit="1",
)

mapping_call_duration = meter.create_histogram(
    name="mapping_provider_call_duration_seconds",
    description="Duration of geocoding and routing calls",
    unit="s",
)


def record_order_created(item_count: int) -> None:
    """Record a successfully created order.

    Args:
        item_count: Number of line items on the order
    """
    orders_created_counter.add(1, {"line_items": item_count})


def record_order_rejected(reason: str) -> None:
    """Record a rejected order creation.

    Args:
        reason: Error kind that rejected the order
    """
    order_rejections_counter.add(1, {"reason": reason})


def record_tracking_update(tracking_status: str) -> None:
    tracking_updates_counter.add(1, {"tracking_status": tracking_status})


def record_broadcast_failure(channel_kind: str) -> None:
    """Record an event that was dropped instead of delivered.

    Args:
        channel_kind: "tracking" or "order_status"
    """
    broadcast_failure_counter.add(1, {"channel": channel_kind})


def record_connection_change(change: int) -> None:
    """Record a change in connected clients (+1 connect, -1 disconnect)."""
    active_connections.add(change)


def record_mapping_call(operation: str, duration_seconds: float) -> None:
    """Record a mapping provider call.

    Args:
        operation: The operation performed (e.g., "geocode", "route")
        duration_seconds: Duration in seconds
    """
    mapping_call_duration.record(duration_seconds, {"operation": operation})
