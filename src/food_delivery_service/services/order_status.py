"""Order status transition rules."""

from dataclasses import dataclass

from food_delivery_service.errors import InvalidStatusTransitionError
from food_delivery_service.models.order_models import OrderStatus

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Cancellation once the food has left the kitchen is a business decision.
LATE_CANCELLATION_SOURCES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY}
)


@dataclass(frozen=True)
class StatusPolicy:
    """Configurable parts of the status state machine.

    Attributes:
        allow_cancel_after_ready: Whether ready/out_for_delivery orders may be cancelled
    """

    allow_cancel_after_ready: bool = False


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(
    current: OrderStatus, new: OrderStatus, policy: StatusPolicy | None = None
) -> bool:
    """Return whether an order may move from current to new status."""
    policy = policy or StatusPolicy()
    if new in ALLOWED_TRANSITIONS[current]:
        return True
    return (
        new == OrderStatus.CANCELLED
        and current in LATE_CANCELLATION_SOURCES
        and policy.allow_cancel_after_ready
    )


def ensure_transition(
    current: OrderStatus, new: OrderStatus, policy: StatusPolicy | None = None
) -> None:
    """Raise InvalidStatusTransitionError unless current -> new is allowed."""
    if not can_transition(current, new, policy):
        raise InvalidStatusTransitionError(current.value, new.value)
