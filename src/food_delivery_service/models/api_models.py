"""Request and response bodies of the HTTP API."""

import math
from decimal import Decimal

from pydantic import Field

from food_delivery_service.models.base_models import CamelModel, Money
from food_delivery_service.models.menu_models import FoodCategory
from food_delivery_service.models.order_models import (
    Order,
    OrderItemInput,
    OrderListResult,
    OrderStats,
    OrderStatus,
)


class HealthResponse(CamelModel):
    """Health check response model."""

    status: str


class ReadinessResponse(CamelModel):
    status: str
    checks: dict[str, bool]


class OrderCreateRequest(CamelModel):
    items: list[OrderItemInput]
    delivery_address: str


class StatusUpdateRequest(CamelModel):
    status: OrderStatus


class LocationUpdateRequest(CamelModel):
    """Courier position sent by the delivery app."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str | None = None


class Pagination(CamelModel):
    total: int
    total_pages: int
    current_page: int
    limit: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        """Derive page metadata from the filtered total.

        ``total_pages`` is ``ceil(total / limit)``, so an empty result has
        zero pages and no next page.
        """
        total_pages = math.ceil(total / limit)
        return cls(
            total=total,
            total_pages=total_pages,
            current_page=page,
            limit=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class OrderListResponse(CamelModel):
    orders: list[Order]
    pagination: Pagination

    @classmethod
    def from_result(cls, result: OrderListResult, page: int, limit: int) -> "OrderListResponse":
        return cls(
            orders=result.orders,
            pagination=Pagination.build(result.total_count, page, limit),
        )


class StatusStatsResponse(CamelModel):
    status: OrderStatus
    count: int
    total_amount: Money


class OrderStatsResponse(CamelModel):
    stats: list[StatusStatsResponse]
    total_orders: int
    total_amount: Money

    @classmethod
    def from_stats(cls, stats: OrderStats) -> "OrderStatsResponse":
        return cls(
            stats=[
                StatusStatsResponse(status=s.status, count=s.count, total_amount=s.sum_amount)
                for s in stats.count_by_status
            ],
            total_orders=stats.total_orders,
            total_amount=stats.total_amount,
        )


class FoodItemCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., max_length=500)
    price: Decimal = Field(..., ge=0)
    category: FoodCategory
    image_url: str
    is_available: bool = True
    preparation_time_minutes: int = Field(..., ge=1)


class FoodItemUpdateRequest(CamelModel):
    """Partial update; omitted fields keep their current value."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: Decimal | None = Field(default=None, ge=0)
    category: FoodCategory | None = None
    image_url: str | None = None
    is_available: bool | None = None
    preparation_time_minutes: int | None = Field(default=None, ge=1)
