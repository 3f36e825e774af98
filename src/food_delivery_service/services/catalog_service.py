"""Catalog service for food item lookups and administration."""

import asyncio
import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from food_delivery_service.errors import FoodItemNotFoundError, ValidationError
from food_delivery_service.models.menu_models import FoodCategory, FoodItem
from food_delivery_service.observability.decorators import traced
from food_delivery_service.repositories.food_item_repository import FoodItemRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "price",
        "category",
        "image_url",
        "is_available",
        "preparation_time_minutes",
    }
)


class CatalogService:
    """Async facade over the food item repository.

    Repository calls are blocking boto3 calls and run in worker threads.
    """

    def __init__(self, repository: FoodItemRepository) -> None:
        self.repository = repository

    async def get_food_item(self, food_item_id: str) -> FoodItem:
        """Return one food item.

        Raises:
            FoodItemNotFoundError: If no item has this id
        """
        item = await asyncio.to_thread(self.repository.get_food_item, food_item_id)
        if item is None:
            raise FoodItemNotFoundError(food_item_id)
        return item

    async def get_food_items(self, food_item_ids: list[str]) -> dict[str, FoodItem]:
        """Return the subset of the given ids that exist, keyed by id."""
        if not food_item_ids:
            return {}
        return await asyncio.to_thread(self.repository.batch_get_food_items, food_item_ids)

    async def list_food_items(
        self, category: FoodCategory | None = None, available_only: bool = False
    ) -> list[FoodItem]:
        return await asyncio.to_thread(self.repository.list_food_items, category, available_only)

    @traced("catalog.create_food_item")
    async def create_food_item(
        self,
        name: str,
        description: str,
        price: Decimal,
        category: FoodCategory,
        image_url: str,
        preparation_time_minutes: int,
        is_available: bool = True,
    ) -> FoodItem:
        item = FoodItem.new(
            name=name,
            description=description,
            price=price,
            category=category,
            image_url=image_url,
            preparation_time_minutes=preparation_time_minutes,
            is_available=is_available,
        )
        saved = await asyncio.to_thread(self.repository.save_food_item, item)
        logger.info(f"Created food item {saved.id} ({saved.name})")
        return saved

    @traced("catalog.update_food_item")
    async def update_food_item(self, food_item_id: str, changes: dict[str, Any]) -> FoodItem:
        """Apply a partial update to a food item.

        Args:
            food_item_id: Item to update
            changes: Field name to new value; None values are ignored

        Returns:
            FoodItem: The updated item

        Raises:
            FoodItemNotFoundError: If no item has this id
            ValidationError: If a field is unknown or a value is invalid
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        current = await self.get_food_item(food_item_id)
        updates = {key: value for key, value in changes.items() if value is not None}
        if not updates:
            return current

        data = current.model_dump()
        data.update(updates)
        data["updated_at"] = datetime.now(UTC)

        try:
            updated = FoodItem.model_validate(data)
        except ValueError as e:
            raise ValidationError("Invalid food item update", details=str(e)) from e

        saved = await asyncio.to_thread(self.repository.save_food_item, updated)
        logger.info(f"Updated food item {food_item_id}: {', '.join(sorted(updates))}")
        return saved

    @traced("catalog.delete_food_item")
    async def delete_food_item(self, food_item_id: str) -> None:
        """Remove a food item from the catalog.

        Raises:
            FoodItemNotFoundError: If no item has this id
        """
        deleted = await asyncio.to_thread(self.repository.delete_food_item, food_item_id)
        if not deleted:
            raise FoodItemNotFoundError(food_item_id)
        logger.info(f"Deleted food item {food_item_id}")
