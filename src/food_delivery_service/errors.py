"""Exception taxonomy for the food delivery service.

Every error that can reach a client carries a stable machine-readable kind,
the HTTP status it maps to, and a human message. Handlers in
``handlers/error_handlers.py`` turn these into structured JSON responses.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for all expected service errors."""

    kind = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(ServiceError):
    kind = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class BadRequestError(ServiceError):
    kind = "BAD_REQUEST"
    status_code = 400
    default_message = "Bad request"


class ItemNotFoundError(BadRequestError):
    """A requested line item references a food item that does not exist."""

    def __init__(self, food_item_id: str) -> None:
        super().__init__(
            f"Food item {food_item_id} not found", details={"foodItemId": food_item_id}
        )
        self.food_item_id = food_item_id


class ItemUnavailableError(BadRequestError):
    """A requested line item references a food item that is not available."""

    def __init__(self, food_item_id: str, name: str) -> None:
        super().__init__(
            f"Food item {name} is not available", details={"foodItemId": food_item_id}
        )
        self.food_item_id = food_item_id


class NoTrackingInfoError(BadRequestError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"No tracking information available for order {order_id}",
            details={"orderId": order_id},
        )
        self.order_id = order_id


class AuthError(ServiceError):
    kind = "AUTH_ERROR"
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(ServiceError):
    kind = "FORBIDDEN"
    status_code = 403
    default_message = "Access denied"


class NotFoundError(ServiceError):
    kind = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found", details={"orderId": order_id})
        self.order_id = order_id


class FoodItemNotFoundError(NotFoundError):
    def __init__(self, food_item_id: str) -> None:
        super().__init__(
            f"Food item {food_item_id} not found", details={"foodItemId": food_item_id}
        )
        self.food_item_id = food_item_id


class TrackingNotFoundError(NotFoundError):
    """Tracking was read for an order that has never been located."""

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"No tracking information found for order {order_id}",
            details={"orderId": order_id},
        )
        self.order_id = order_id


class InvalidStatusTransitionError(ServiceError):
    kind = "CONFLICT"
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            details={"currentStatus": current, "requestedStatus": requested},
        )
        self.current = current
        self.requested = requested


class ExternalServiceError(ServiceError):
    """The mapping provider failed or returned no usable result."""

    kind = "EXTERNAL_SERVICE_ERROR"
    status_code = 502
    default_message = "External service request failed"


class ExternalServiceTimeout(ExternalServiceError):
    kind = "EXTERNAL_SERVICE_TIMEOUT"
    status_code = 504
    default_message = "External service request timed out"


class StoreError(ServiceError):
    """The document store could not complete an operation."""

    default_message = "Database operation failed"


class ConfigurationError(ServiceError):
    default_message = "Service is not configured correctly"


class InternalError(ServiceError):
    pass


class NotInitializedError(ServiceError):
    """The real-time layer was used before it was initialized or after shutdown."""

    default_message = "Real-time notifier is not initialized"


class BroadcastError(ServiceError):
    default_message = "Failed to enqueue real-time event"
