"""Order, tracking and routing models.

An order embeds its tracking snapshot: tracking is 1:1 with the order and is
never queried on its own, so it lives inside the order item in DynamoDB.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import Field

from food_delivery_service.models.base_models import (
    CamelModel,
    Money,
    parse_timestamp,
    to_decimal,
)


class OrderStatus(str, Enum):
    """Business-level order state."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TrackingStatus(str, Enum):
    """Physical delivery state."""

    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"


class SortField(str, Enum):
    """Order fields that listings may be sorted by."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    TOTAL_AMOUNT = "totalAmount"
    STATUS = "status"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Location(CamelModel):
    """A point on the map, optionally with its formatted address."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str | None = None

    def to_dynamodb_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {"lat": to_decimal(self.lat), "lng": to_decimal(self.lng)}
        if self.address is not None:
            item["address"] = self.address
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Location":
        return cls(lat=float(item["lat"]), lng=float(item["lng"]), address=item.get("address"))

    def as_coordinates(self) -> str:
        """Return the ``lat,lng`` form used by the mapping provider."""
        return f"{self.lat},{self.lng}"


class DeliveryRoute(CamelModel):
    """A route computed on demand by the mapping provider. Never persisted."""

    origin: Location
    destination: Location
    waypoints: list[Location] | None = None
    distance_meters: int = Field(..., ge=0)
    duration_seconds: int = Field(..., ge=0)


class TrackingInfo(CamelModel):
    """Live delivery position and ETA embedded in an order."""

    order_id: str
    current_location: Location
    estimated_arrival: datetime
    tracking_status: TrackingStatus = TrackingStatus.PICKED_UP
    last_updated: datetime

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "current_location": self.current_location.to_dynamodb_item(),
            "estimated_arrival": self.estimated_arrival.isoformat(),
            "tracking_status": self.tracking_status.value,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "TrackingInfo":
        return cls(
            order_id=item["order_id"],
            current_location=Location.from_dynamodb_item(item["current_location"]),
            estimated_arrival=parse_timestamp(item["estimated_arrival"]),
            tracking_status=TrackingStatus(item["tracking_status"]),
            last_updated=parse_timestamp(item["last_updated"]),
        )


class OrderItemInput(CamelModel):
    """A requested line: which catalog item and how many.

    Quantity bounds are checked by the order service so that every caller
    gets the same validation error.
    """

    food_item_id: str = Field(..., alias="foodItem", min_length=1)
    quantity: int


class OrderLineItem(CamelModel):
    """One line of an order with the unit price captured at creation time."""

    food_item_id: str
    quantity: int = Field(..., ge=1)
    unit_price_at_order_time: Money = Field(..., ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price_at_order_time * self.quantity


class Order(CamelModel):
    """A customer's order.

    ``total_amount`` is a frozen snapshot computed once in :meth:`new`; it is
    never recomputed from the catalog.
    """

    id: str = Field(..., description="Unique order identifier")
    user_id: str = Field(..., description="Owner of the order")
    line_items: list[OrderLineItem] = Field(..., min_length=1)
    total_amount: Money = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    delivery_address: str = Field(..., min_length=1)
    tracking: TrackingInfo | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def new(
        cls,
        user_id: str,
        line_items: list[OrderLineItem],
        delivery_address: str,
    ) -> "Order":
        """Build a pending order, pricing it from the captured unit prices."""
        now = datetime.now(UTC)
        total = sum((line.line_total for line in line_items), Decimal("0"))
        return cls(
            id=f"ord_{uuid.uuid4().hex}",
            user_id=user_id,
            line_items=line_items,
            total_amount=total,
            status=OrderStatus.PENDING,
            delivery_address=delivery_address,
            created_at=now,
            updated_at=now,
        )

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "order_id": self.id,
            "user_id": self.user_id,
            "line_items": [
                {
                    "food_item_id": line.food_item_id,
                    "quantity": line.quantity,
                    "unit_price_at_order_time": to_decimal(line.unit_price_at_order_time),
                }
                for line in self.line_items
            ],
            "total_amount": to_decimal(self.total_amount),
            "status": self.status.value,
            "delivery_address": self.delivery_address,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

        if self.tracking is not None:
            item["tracking"] = self.tracking.to_dynamodb_item()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        data: dict[str, Any] = {
            "id": item["order_id"],
            "user_id": item["user_id"],
            "line_items": [
                OrderLineItem(
                    food_item_id=line["food_item_id"],
                    quantity=int(line["quantity"]),
                    unit_price_at_order_time=to_decimal(line["unit_price_at_order_time"]),
                )
                for line in item["line_items"]
            ],
            "total_amount": to_decimal(item["total_amount"]),
            "status": OrderStatus(item["status"]),
            "delivery_address": item["delivery_address"],
            "created_at": parse_timestamp(item["created_at"]),
            "updated_at": parse_timestamp(item["updated_at"]),
        }

        if item.get("tracking"):
            data["tracking"] = TrackingInfo.from_dynamodb_item(item["tracking"])

        return cls(**data)


class OrderQuery(CamelModel):
    """Filter, sort and page parameters for order listings.

    ``owner_id`` is always set by the service from the authenticated
    principal, never copied from client input.
    """

    owner_id: str | None = None
    status: OrderStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class OrderListResult(CamelModel):
    orders: list[Order]
    total_count: int = Field(..., ge=0)


class StatusStats(CamelModel):
    status: OrderStatus
    count: int
    sum_amount: Money


class OrderStats(CamelModel):
    count_by_status: list[StatusStats]
    total_orders: int
    total_amount: Money
