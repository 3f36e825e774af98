"""Unit tests for OrderRepository."""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from food_delivery_service.errors import StoreError
from food_delivery_service.models.order_models import (
    Order,
    OrderQuery,
    OrderStatus,
    SortField,
    SortOrder,
    TrackingInfo,
)
from food_delivery_service.repositories.order_repository import OrderRepository


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


def _order_item(order: Order, **overrides: object) -> dict:
    item = order.to_dynamodb_item()
    item.update(overrides)
    return item


@pytest.mark.unit
class TestOrderRepositoryWrites:
    """Test suite for order writes."""

    @pytest.fixture
    def mock_dynamodb(self) -> MagicMock:
        """Create a mock DynamoDB resource."""
        return MagicMock()

    @pytest.fixture
    def repository(self, mock_dynamodb: MagicMock) -> OrderRepository:
        return OrderRepository(dynamodb_resource=mock_dynamodb, table_name="test-orders")

    def test_repository_initialization(self, mock_dynamodb: MagicMock) -> None:
        repo = OrderRepository(dynamodb_resource=mock_dynamodb, table_name="test-table")
        assert repo.table_name == "test-table"
        mock_dynamodb.Table.assert_called_once_with("test-table")

    def test_create_order_puts_item_with_uniqueness_condition(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, sample_order: Order
    ) -> None:
        result = repository.create_order(sample_order)

        assert result == sample_order
        call = mock_dynamodb.Table.return_value.put_item.call_args
        assert call.kwargs["Item"]["order_id"] == "ord_abc"
        assert call.kwargs["ConditionExpression"] == "attribute_not_exists(order_id)"

    def test_create_order_raises_store_error(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, sample_order: Order
    ) -> None:
        mock_dynamodb.Table.return_value.put_item.side_effect = _client_error(
            "InternalServerError", "PutItem"
        )

        with pytest.raises(StoreError):
            repository.create_order(sample_order)

    def test_get_order_found(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, sample_order: Order
    ) -> None:
        mock_dynamodb.Table.return_value.get_item.return_value = {
            "Item": sample_order.to_dynamodb_item()
        }

        order = repository.get_order("ord_abc")

        assert order == sample_order
        mock_dynamodb.Table.return_value.get_item.assert_called_once_with(
            Key={"order_id": "ord_abc"}, ConsistentRead=True
        )

    def test_get_order_not_found(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        mock_dynamodb.Table.return_value.get_item.return_value = {}

        assert repository.get_order("ord_missing") is None

    def test_update_tracking_overwrites_embedded_document(
        self,
        repository: OrderRepository,
        mock_dynamodb: MagicMock,
        sample_order: Order,
        sample_tracking: TrackingInfo,
    ) -> None:
        """Test that tracking is written with a conditional update and the new item returned."""
        updated = sample_order.model_copy(update={"tracking": sample_tracking})
        mock_dynamodb.Table.return_value.update_item.return_value = {
            "Attributes": updated.to_dynamodb_item()
        }

        result = repository.update_tracking("ord_abc", sample_tracking)

        assert result is not None
        assert result.tracking == sample_tracking
        kwargs = mock_dynamodb.Table.return_value.update_item.call_args.kwargs
        assert kwargs["Key"] == {"order_id": "ord_abc"}
        assert kwargs["ConditionExpression"] == "attribute_exists(order_id)"
        assert kwargs["ExpressionAttributeValues"][":tracking"]["tracking_status"] == "in_transit"
        assert ":updated_at" in kwargs["ExpressionAttributeValues"]
        assert kwargs["ReturnValues"] == "ALL_NEW"

    def test_update_tracking_and_status_is_one_write(
        self,
        repository: OrderRepository,
        mock_dynamodb: MagicMock,
        sample_order: Order,
        sample_tracking: TrackingInfo,
    ) -> None:
        updated = sample_order.model_copy(
            update={"tracking": sample_tracking, "status": OrderStatus.DELIVERED}
        )
        mock_dynamodb.Table.return_value.update_item.return_value = {
            "Attributes": updated.to_dynamodb_item()
        }

        result = repository.update_tracking_and_status(
            "ord_abc", sample_tracking, OrderStatus.DELIVERED
        )

        assert result is not None
        assert result.status == OrderStatus.DELIVERED
        table = mock_dynamodb.Table.return_value
        assert table.update_item.call_count == 1
        kwargs = table.update_item.call_args.kwargs
        assert "tracking = :tracking" in kwargs["UpdateExpression"]
        assert "#status = :status" in kwargs["UpdateExpression"]
        assert kwargs["ExpressionAttributeNames"] == {"#status": "status"}
        assert kwargs["ExpressionAttributeValues"][":status"] == "delivered"

    def test_update_status_missing_order_returns_none(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        mock_dynamodb.Table.return_value.update_item.side_effect = _client_error(
            "ConditionalCheckFailedException", "UpdateItem"
        )

        assert repository.update_status("ord_missing", OrderStatus.PREPARING) is None

    def test_update_status_other_errors_raise(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        mock_dynamodb.Table.return_value.update_item.side_effect = _client_error(
            "ProvisionedThroughputExceededException", "UpdateItem"
        )

        with pytest.raises(StoreError):
            repository.update_status("ord_abc", OrderStatus.PREPARING)

    def test_check_health(self, repository: OrderRepository, mock_dynamodb: MagicMock) -> None:
        assert repository.check_health() is True
        mock_dynamodb.meta.client.describe_table.assert_called_once_with(TableName="test-orders")

        mock_dynamodb.meta.client.describe_table.side_effect = _client_error(
            "ResourceNotFoundException", "DescribeTable"
        )
        assert repository.check_health() is False


@pytest.mark.unit
class TestOrderRepositoryQueries:
    """Test suite for listing and aggregation."""

    @pytest.fixture
    def mock_dynamodb(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def repository(self, mock_dynamodb: MagicMock) -> OrderRepository:
        return OrderRepository(dynamodb_resource=mock_dynamodb, table_name="test-orders")

    @pytest.fixture
    def stored_orders(self, sample_order: Order) -> list[dict]:
        """Three orders created one hour apart with different totals and statuses."""
        base = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
        orders = []
        for index, (status, total) in enumerate(
            [
                (OrderStatus.PENDING, "25.00"),
                (OrderStatus.DELIVERED, "12.50"),
                (OrderStatus.PENDING, "40.00"),
            ]
        ):
            created = base + timedelta(hours=index)
            orders.append(
                _order_item(
                    sample_order,
                    order_id=f"ord_{index}",
                    status=status.value,
                    total_amount=Decimal(total),
                    created_at=created.isoformat(),
                    updated_at=created.isoformat(),
                )
            )
        return orders

    def test_list_orders_sorts_and_pages(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        """Test that the filtered set is sorted, sliced and counted."""
        mock_dynamodb.Table.return_value.scan.return_value = {"Items": stored_orders}

        result = repository.list_orders(
            OrderQuery(sort_by=SortField.TOTAL_AMOUNT, sort_order=SortOrder.DESC, page=1, limit=2)
        )

        assert result.total_count == 3
        assert [order.id for order in result.orders] == ["ord_2", "ord_0"]

    def test_list_orders_second_page(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        mock_dynamodb.Table.return_value.scan.return_value = {"Items": stored_orders}

        result = repository.list_orders(
            OrderQuery(sort_by=SortField.CREATED_AT, sort_order=SortOrder.ASC, page=2, limit=2)
        )

        assert result.total_count == 3
        assert [order.id for order in result.orders] == ["ord_2"]

    def test_list_orders_filters_on_date_bounds_in_utc(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        """Test that naive bounds are read as UTC and aware bounds are converted to UTC."""
        table = mock_dynamodb.Table.return_value
        table.scan.return_value = {"Items": stored_orders[1:]}

        result = repository.list_orders(
            OrderQuery(
                start_date=datetime(2024, 1, 15, 10, 30),
                end_date=datetime(2024, 1, 15, 14, 0, tzinfo=timezone(timedelta(hours=2))),
            )
        )

        assert table.scan.call_args.kwargs["FilterExpression"] == (
            Attr("created_at").gte("2024-01-15T10:30:00+00:00")
            & Attr("created_at").lte("2024-01-15T12:00:00+00:00")
        )
        assert result.total_count == 2

    def test_list_orders_combines_status_and_start_date(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        table = mock_dynamodb.Table.return_value
        table.scan.return_value = {"Items": []}

        repository.list_orders(
            OrderQuery(
                status=OrderStatus.DELIVERED,
                start_date=datetime(2024, 1, 15, 11, 0, tzinfo=UTC),
            )
        )

        assert table.scan.call_args.kwargs["FilterExpression"] == (
            Attr("status").eq("delivered") & Attr("created_at").gte("2024-01-15T11:00:00+00:00")
        )

    @pytest.mark.parametrize(
        "sort_by,expected",
        [
            (SortField.CREATED_AT, ["ord_0", "ord_1", "ord_2"]),
            (SortField.UPDATED_AT, ["ord_1", "ord_2", "ord_0"]),
            (SortField.TOTAL_AMOUNT, ["ord_1", "ord_0", "ord_2"]),
            (SortField.STATUS, ["ord_1", "ord_0", "ord_2"]),
        ],
    )
    def test_list_orders_sorts_ascending_by_each_field(
        self,
        repository: OrderRepository,
        mock_dynamodb: MagicMock,
        stored_orders: list[dict],
        sort_by: SortField,
        expected: list[str],
    ) -> None:
        stored_orders[0]["updated_at"] = datetime(2024, 1, 15, 13, 0, tzinfo=UTC).isoformat()
        mock_dynamodb.Table.return_value.scan.return_value = {"Items": stored_orders}

        result = repository.list_orders(OrderQuery(sort_by=sort_by, sort_order=SortOrder.ASC))

        assert [order.id for order in result.orders] == expected

    def test_list_orders_defaults_to_newest_first(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        mock_dynamodb.Table.return_value.scan.return_value = {"Items": stored_orders}

        result = repository.list_orders(OrderQuery())

        assert [order.id for order in result.orders] == ["ord_2", "ord_1", "ord_0"]

    def test_list_orders_follows_pagination(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        table = mock_dynamodb.Table.return_value
        table.scan.side_effect = [
            {"Items": stored_orders[:2], "LastEvaluatedKey": {"order_id": "ord_1"}},
            {"Items": stored_orders[2:]},
        ]

        result = repository.list_orders(OrderQuery())

        assert result.total_count == 3
        assert table.scan.call_count == 2
        assert table.scan.call_args_list[1].kwargs["ExclusiveStartKey"] == {"order_id": "ord_1"}

    def test_list_orders_for_owner_uses_user_index(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        table = mock_dynamodb.Table.return_value
        table.query.return_value = {"Items": stored_orders}

        result = repository.list_orders(OrderQuery(owner_id="user_123", status=OrderStatus.PENDING))

        table.scan.assert_not_called()
        kwargs = table.query.call_args.kwargs
        assert kwargs["IndexName"] == "user_id-index"
        assert "KeyConditionExpression" in kwargs
        assert "FilterExpression" in kwargs
        assert result.total_count == 3

    def test_list_orders_store_error(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        mock_dynamodb.Table.return_value.scan.side_effect = _client_error(
            "InternalServerError", "Scan"
        )

        with pytest.raises(StoreError):
            repository.list_orders(OrderQuery())

    def test_aggregate_stats(
        self, repository: OrderRepository, mock_dynamodb: MagicMock, stored_orders: list[dict]
    ) -> None:
        """Test per-status counts and sums plus overall totals."""
        mock_dynamodb.Table.return_value.scan.return_value = {"Items": stored_orders}

        stats = repository.aggregate_stats()

        assert stats.total_orders == 3
        assert stats.total_amount == Decimal("77.50")
        by_status = {entry.status: entry for entry in stats.count_by_status}
        assert by_status[OrderStatus.PENDING].count == 2
        assert by_status[OrderStatus.PENDING].sum_amount == Decimal("65.00")
        assert by_status[OrderStatus.DELIVERED].count == 1
        assert OrderStatus.CANCELLED not in by_status

    def test_aggregate_stats_empty(
        self, repository: OrderRepository, mock_dynamodb: MagicMock
    ) -> None:
        mock_dynamodb.Table.return_value.query.return_value = {"Items": []}

        stats = repository.aggregate_stats(owner_id="user_123")

        assert stats.total_orders == 0
        assert stats.total_amount == Decimal("0")
        assert stats.count_by_status == []
