"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Keep src/main.py from building the real application at import time
os.environ.setdefault("ENVIRONMENT", "test")

from food_delivery_service.models.auth_models import Principal, Role  # noqa: E402
from food_delivery_service.models.menu_models import FoodCategory, FoodItem  # noqa: E402
from food_delivery_service.models.order_models import (  # noqa: E402
    Location,
    Order,
    OrderLineItem,
    OrderStatus,
    TrackingInfo,
    TrackingStatus,
)


@pytest.fixture
def customer() -> Principal:
    """Fixture providing an authenticated customer."""
    return Principal(user_id="user_123", role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Principal:
    return Principal(user_id="user_456", role=Role.CUSTOMER)


@pytest.fixture
def admin() -> Principal:
    """Fixture providing an authenticated admin."""
    return Principal(user_id="admin_1", role=Role.ADMIN)


@pytest.fixture
def pizza() -> FoodItem:
    """Fixture providing an available $10.00 catalog item."""
    now = datetime.now(UTC)
    return FoodItem(
        id="food_pizza",
        name="Margherita",
        description="Tomato, mozzarella, basil",
        price=Decimal("10.00"),
        category=FoodCategory.PIZZA,
        image_url="https://example.com/pizza.jpg",
        is_available=True,
        preparation_time_minutes=15,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def salad() -> FoodItem:
    """Fixture providing an available $5.00 catalog item."""
    now = datetime.now(UTC)
    return FoodItem(
        id="food_salad",
        name="Garden Salad",
        description="Mixed greens",
        price=Decimal("5.00"),
        category=FoodCategory.SALAD,
        image_url="https://example.com/salad.jpg",
        is_available=True,
        preparation_time_minutes=5,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def restaurant_location() -> Location:
    return Location(lat=40.7128, lng=-74.006, address="1 Main St, New York, NY")


@pytest.fixture
def courier_location() -> Location:
    return Location(lat=40.73, lng=-73.99)


@pytest.fixture
def sample_order() -> Order:
    """Fixture providing a pending order owned by user_123."""
    now = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    return Order(
        id="ord_abc",
        user_id="user_123",
        line_items=[
            OrderLineItem(
                food_item_id="food_pizza", quantity=2, unit_price_at_order_time=Decimal("10.00")
            ),
            OrderLineItem(
                food_item_id="food_salad", quantity=1, unit_price_at_order_time=Decimal("5.00")
            ),
        ],
        total_amount=Decimal("25.00"),
        status=OrderStatus.PENDING,
        delivery_address="42 Elm St",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def sample_tracking(courier_location: Location) -> TrackingInfo:
    now = datetime(2024, 1, 15, 11, 0, tzinfo=UTC)
    return TrackingInfo(
        order_id="ord_abc",
        current_location=courier_location,
        estimated_arrival=datetime(2024, 1, 15, 11, 20, tzinfo=UTC),
        tracking_status=TrackingStatus.IN_TRANSIT,
        last_updated=now,
    )


@pytest.fixture
def tracked_order(sample_order: Order, sample_tracking: TrackingInfo) -> Order:
    """Fixture providing an out-for-delivery order that has been located."""
    return sample_order.model_copy(
        update={"status": OrderStatus.OUT_FOR_DELIVERY, "tracking": sample_tracking}
    )
