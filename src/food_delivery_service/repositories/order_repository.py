"""DynamoDB repository for orders.

Orders live in a single table keyed by ``order_id`` with a global secondary
index on ``user_id`` for customer-scoped listings. Tracking is stored inside
the order item. A missing order is an expected outcome and is returned as
None; any other DynamoDB failure raises StoreError.

Concurrent tracking writes to the same order are last-write-wins: updates
overwrite the embedded tracking document without a version check.
"""

import functools
import logging
import operator
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from boto3.dynamodb.conditions import Attr, ConditionBase, Key
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from food_delivery_service.errors import StoreError
from food_delivery_service.models.order_models import (
    Order,
    OrderListResult,
    OrderQuery,
    OrderStats,
    OrderStatus,
    SortField,
    SortOrder,
    StatusStats,
    TrackingInfo,
)

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

_SORT_KEYS = {
    SortField.CREATED_AT: lambda order: order.created_at,
    SortField.UPDATED_AT: lambda order: order.updated_at,
    SortField.TOTAL_AMOUNT: lambda order: order.total_amount,
    SortField.STATUS: lambda order: order.status.value,
}


def _as_utc_iso(value: datetime) -> str:
    """Normalise a filter bound to the UTC ISO form used for stored timestamps."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class OrderRepository:
    """Repository for order persistence and queries.

    Manages order records in DynamoDB with ``order_id`` as partition key.
    """

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        table_name: str,
        user_index_name: str = "user_id-index",
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
            user_index_name: Name of the GSI partitioned on user_id
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.user_index_name = user_index_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def create_order(self, order: Order) -> Order:
        """Persist a new order.

        Args:
            order: Fully priced order draft with id and timestamps assigned

        Returns:
            Order: The persisted order

        Raises:
            StoreError: If the write fails or the id already exists
        """
        try:
            self.table.put_item(
                Item=order.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(order_id)",
            )
        except ClientError as e:
            logger.error(f"Failed to create order {order.id}: {e}")
            raise StoreError(f"Failed to create order {order.id}") from e

        return order

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by ID.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"order_id": order_id}, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise StoreError(f"Failed to get order {order_id}") from e

        if "Item" not in response:
            return None

        return Order.from_dynamodb_item(response["Item"])

    def update_status(self, order_id: str, status: OrderStatus) -> Order | None:
        """Overwrite the status of an order.

        No transition rules are applied here; the service layer owns them.

        Args:
            order_id: Order identifier
            status: New status

        Returns:
            The updated Order, or None if it does not exist
        """
        return self._update(
            order_id,
            "SET #status = :status, updated_at = :updated_at",
            {":status": status.value},
            names={"#status": "status"},
        )

    def update_tracking(self, order_id: str, tracking: TrackingInfo) -> Order | None:
        """Overwrite the embedded tracking document of an order.

        Args:
            order_id: Order identifier
            tracking: Tracking snapshot replacing the current one

        Returns:
            The updated Order, or None if it does not exist
        """
        return self._update(
            order_id,
            "SET tracking = :tracking, updated_at = :updated_at",
            {":tracking": tracking.to_dynamodb_item()},
        )

    def update_tracking_and_status(
        self, order_id: str, tracking: TrackingInfo, status: OrderStatus
    ) -> Order | None:
        """Overwrite tracking and status together in one item write.

        Args:
            order_id: Order identifier
            tracking: Tracking snapshot replacing the current one
            status: New order status

        Returns:
            The updated Order, or None if it does not exist
        """
        return self._update(
            order_id,
            "SET tracking = :tracking, #status = :status, updated_at = :updated_at",
            {":tracking": tracking.to_dynamodb_item(), ":status": status.value},
            names={"#status": "status"},
        )

    def list_orders(self, query: OrderQuery) -> OrderListResult:
        """List orders matching a filter, sorted and paginated.

        DynamoDB has no offset pagination, so the filtered set is read in
        full, sorted in memory and sliced with ``skip``/``limit``.

        Args:
            query: Filter, sort and page parameters

        Returns:
            OrderListResult with the requested page and the filtered total
        """
        orders = self._fetch_orders(
            owner_id=query.owner_id,
            status=query.status,
            start_date=query.start_date,
            end_date=query.end_date,
        )

        orders.sort(key=_SORT_KEYS[query.sort_by], reverse=query.sort_order == SortOrder.DESC)

        page = orders[query.skip : query.skip + query.limit]
        return OrderListResult(orders=page, total_count=len(orders))

    def aggregate_stats(self, owner_id: str | None = None) -> OrderStats:
        """Compute per-status counts and amounts plus overall totals in one pass.

        Args:
            owner_id: Restrict to one user's orders, or None for all orders

        Returns:
            OrderStats for the filtered set
        """
        counts: dict[OrderStatus, int] = {}
        sums: dict[OrderStatus, Decimal] = {}
        total_amount = Decimal("0")

        orders = self._fetch_orders(owner_id=owner_id)
        for order in orders:
            counts[order.status] = counts.get(order.status, 0) + 1
            sums[order.status] = sums.get(order.status, Decimal("0")) + order.total_amount
            total_amount += order.total_amount

        return OrderStats(
            count_by_status=[
                StatusStats(status=status, count=counts[status], sum_amount=sums[status])
                for status in OrderStatus
                if status in counts
            ],
            total_orders=len(orders),
            total_amount=total_amount,
        )

    def check_health(self) -> bool:
        """Return True when the orders table is reachable."""
        try:
            self.dynamodb.meta.client.describe_table(TableName=self.table_name)
            return True
        except ClientError as e:
            logger.warning(f"Orders table health check failed: {e}")
            return False

    def _update(
        self,
        order_id: str,
        update_expression: str,
        values: dict[str, Any],
        names: dict[str, str] | None = None,
    ) -> Order | None:
        """Run a conditional update_item and return the new item."""
        kwargs: dict[str, Any] = {
            "Key": {"order_id": order_id},
            "UpdateExpression": update_expression,
            "ConditionExpression": "attribute_exists(order_id)",
            "ExpressionAttributeValues": {
                **values,
                ":updated_at": datetime.now(UTC).isoformat(),
            },
            "ReturnValues": "ALL_NEW",
        }
        if names:
            kwargs["ExpressionAttributeNames"] = names

        try:
            response = self.table.update_item(**kwargs)
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                return None
            logger.error(f"Failed to update order {order_id}: {e}")
            raise StoreError(f"Failed to update order {order_id}") from e

        return Order.from_dynamodb_item(response["Attributes"])

    def _fetch_orders(
        self,
        owner_id: str | None = None,
        status: OrderStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Order]:
        """Read every order matching the filter, following pagination."""
        conditions: list[ConditionBase] = []
        if status is not None:
            conditions.append(Attr("status").eq(status.value))
        if start_date is not None:
            conditions.append(Attr("created_at").gte(_as_utc_iso(start_date)))
        if end_date is not None:
            conditions.append(Attr("created_at").lte(_as_utc_iso(end_date)))

        kwargs: dict[str, Any] = {}
        if conditions:
            kwargs["FilterExpression"] = functools.reduce(operator.and_, conditions)

        if owner_id is not None:
            kwargs["IndexName"] = self.user_index_name
            kwargs["KeyConditionExpression"] = Key("user_id").eq(owner_id)
            read_page = self.table.query
        else:
            read_page = self.table.scan

        items: list[dict[str, Any]] = []
        try:
            while True:
                response = read_page(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to list orders: {e}")
            raise StoreError("Failed to list orders") from e

        orders = [Order.from_dynamodb_item(item) for item in items]
        if owner_id is not None:
            orders = [order for order in orders if order.user_id == owner_id]
        return orders
