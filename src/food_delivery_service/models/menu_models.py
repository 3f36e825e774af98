"""Catalog data models.

Food items are referenced by order line items. Deleting or editing an item
never touches historical orders, which keep their own price snapshot.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import Field

from food_delivery_service.models.base_models import (
    CamelModel,
    Money,
    parse_timestamp,
    to_decimal,
)


class FoodCategory(str, Enum):
    """Enumeration of catalog categories."""

    PIZZA = "Pizza"
    BURGER = "Burger"
    SUSHI = "Sushi"
    PASTA = "Pasta"
    SALAD = "Salad"
    DESSERT = "Dessert"
    DRINK = "Drink"


class FoodItem(CamelModel):
    """A purchasable catalog item."""

    id: str = Field(..., description="Unique identifier for the food item")
    name: str = Field(..., min_length=1, description="Item name")
    description: str = Field(..., description="Item description")
    price: Money = Field(..., ge=0, description="Current catalog price")
    category: FoodCategory = Field(..., description="Catalog category")
    image_url: str = Field(..., description="URL to item image")
    is_available: bool = Field(default=True, description="Whether the item can be ordered")
    preparation_time_minutes: int = Field(..., ge=1, description="Preparation time in minutes")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def new(
        cls,
        name: str,
        description: str,
        price: Any,
        category: FoodCategory,
        image_url: str,
        preparation_time_minutes: int,
        is_available: bool = True,
    ) -> "FoodItem":
        """Build a new food item with a generated id and fresh timestamps."""
        now = datetime.now(UTC)
        return cls(
            id=f"food_{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            description=description,
            price=to_decimal(price),
            category=category,
            image_url=image_url,
            is_available=is_available,
            preparation_time_minutes=preparation_time_minutes,
            created_at=now,
            updated_at=now,
        )

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "food_item_id": self.id,
            "name": self.name,
            "description": self.description,
            "price": to_decimal(self.price),
            "category": self.category.value,
            "image_url": self.image_url,
            "is_available": self.is_available,
            "preparation_time_minutes": self.preparation_time_minutes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "FoodItem":
        """Create FoodItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            FoodItem: Parsed model instance
        """
        return cls(
            id=item["food_item_id"],
            name=item["name"],
            description=item.get("description", ""),
            price=to_decimal(item["price"]),
            category=FoodCategory(item["category"]),
            image_url=item.get("image_url", ""),
            is_available=item.get("is_available", True),
            preparation_time_minutes=int(item["preparation_time_minutes"]),
            created_at=parse_timestamp(item["created_at"]),
            updated_at=parse_timestamp(item["updated_at"]),
        )
