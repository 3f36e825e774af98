"""DynamoDB repository for catalog food items."""

import logging
from typing import Any

from boto3.dynamodb.conditions import Attr, ConditionBase
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from food_delivery_service.errors import StoreError
from food_delivery_service.models.menu_models import FoodCategory, FoodItem

logger = logging.getLogger(__name__)

# DynamoDB BatchGetItem accepts at most 100 keys per request.
BATCH_GET_LIMIT = 100
MAX_UNPROCESSED_ROUNDS = 5

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


class FoodItemRepository:
    """Repository for food item CRUD operations.

    Manages food item records in DynamoDB with ``food_item_id`` as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_food_item(self, food_item_id: str) -> FoodItem | None:
        """Retrieve a food item by ID.

        Args:
            food_item_id: Food item identifier

        Returns:
            FoodItem if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"food_item_id": food_item_id})
        except ClientError as e:
            logger.error(f"Failed to get food item {food_item_id}: {e}")
            raise StoreError(f"Failed to get food item {food_item_id}") from e

        if "Item" not in response:
            return None

        return FoodItem.from_dynamodb_item(response["Item"])

    def batch_get_food_items(self, food_item_ids: list[str]) -> dict[str, FoodItem]:
        """Retrieve several food items in as few round-trips as possible.

        Args:
            food_item_ids: Identifiers to look up (duplicates are ignored)

        Returns:
            dict: Found items keyed by id; missing ids are simply absent
        """
        unique_ids = list(dict.fromkeys(food_item_ids))
        found: dict[str, FoodItem] = {}

        for start in range(0, len(unique_ids), BATCH_GET_LIMIT):
            chunk = unique_ids[start : start + BATCH_GET_LIMIT]
            request: dict[str, Any] = {
                self.table_name: {"Keys": [{"food_item_id": item_id} for item_id in chunk]}
            }

            rounds = 0
            while request:
                if rounds >= MAX_UNPROCESSED_ROUNDS:
                    raise StoreError("Food item lookup did not complete: keys left unprocessed")
                rounds += 1

                try:
                    response = self.dynamodb.batch_get_item(RequestItems=request)
                except ClientError as e:
                    logger.error(f"Failed to batch get food items: {e}")
                    raise StoreError("Failed to look up food items") from e

                for item in response.get("Responses", {}).get(self.table_name, []):
                    food_item = FoodItem.from_dynamodb_item(item)
                    found[food_item.id] = food_item

                request = response.get("UnprocessedKeys") or {}

        return found

    def save_food_item(self, food_item: FoodItem) -> FoodItem:
        """Create or replace a food item.

        Args:
            food_item: Food item to save

        Returns:
            FoodItem: The saved item
        """
        try:
            self.table.put_item(Item=food_item.to_dynamodb_item())
        except ClientError as e:
            logger.error(f"Failed to save food item {food_item.id}: {e}")
            raise StoreError(f"Failed to save food item {food_item.id}") from e

        return food_item

    def delete_food_item(self, food_item_id: str) -> bool:
        """Delete a food item.

        Orders keep their own copy of name and price, so they are unaffected.

        Args:
            food_item_id: Food item identifier

        Returns:
            True if the item existed and was deleted, False otherwise
        """
        try:
            self.table.delete_item(
                Key={"food_item_id": food_item_id},
                ConditionExpression="attribute_exists(food_item_id)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED:
                return False
            logger.error(f"Failed to delete food item {food_item_id}: {e}")
            raise StoreError(f"Failed to delete food item {food_item_id}") from e

        return True

    def list_food_items(
        self, category: FoodCategory | None = None, available_only: bool = False
    ) -> list[FoodItem]:
        """List catalog items, optionally filtered.

        Args:
            category: Restrict to one category
            available_only: Only return items that can currently be ordered

        Returns:
            list: Food items sorted by name (empty list if none found)
        """
        conditions: list[ConditionBase] = []
        if category is not None:
            conditions.append(Attr("category").eq(category.value))
        if available_only:
            conditions.append(Attr("is_available").eq(True))

        kwargs: dict[str, Any] = {}
        if conditions:
            expression = conditions[0]
            for condition in conditions[1:]:
                expression = expression & condition
            kwargs["FilterExpression"] = expression

        items: list[dict[str, Any]] = []
        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to list food items: {e}")
            raise StoreError("Failed to list food items") from e

        return sorted((FoodItem.from_dynamodb_item(item) for item in items), key=lambda i: i.name)
