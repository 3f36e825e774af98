"""Order lifecycle service.

Owns order creation, status changes and delivery tracking. Persistence is the
source of truth: every tracking or status event is published only after the
write it describes has completed, and a failure to publish never fails the
operation.

Two concurrent location updates for the same order race at the store and the
last write wins; no locking is applied.
"""

import asyncio
import logging
from datetime import UTC, datetime

from food_delivery_service.adapters.base_adapter import MappingProvider
from food_delivery_service.errors import (
    ConfigurationError,
    ForbiddenError,
    InvalidStatusTransitionError,
    ItemNotFoundError,
    ItemUnavailableError,
    NoTrackingInfoError,
    OrderNotFoundError,
    TrackingNotFoundError,
    ValidationError,
)
from food_delivery_service.models.auth_models import Principal
from food_delivery_service.models.order_models import (
    Location,
    Order,
    OrderItemInput,
    OrderLineItem,
    OrderListResult,
    OrderQuery,
    OrderStats,
    OrderStatus,
    TrackingInfo,
    TrackingStatus,
)
from food_delivery_service.observability.decorators import traced
from food_delivery_service.observability.metrics import (
    record_order_created,
    record_order_rejected,
    record_tracking_update,
)
from food_delivery_service.realtime.dispatcher import NotificationDispatcher
from food_delivery_service.repositories.order_repository import OrderRepository
from food_delivery_service.services.catalog_service import CatalogService
from food_delivery_service.services.order_status import (
    StatusPolicy,
    ensure_transition,
    is_terminal,
)

logger = logging.getLogger(__name__)


def _require_admin(principal: Principal, action: str) -> None:
    if not principal.is_admin:
        raise ForbiddenError(f"Admin role required to {action}")


class OrderService:
    """Service for the order lifecycle.

    Repository calls are blocking boto3 calls and run in worker threads via
    ``asyncio.to_thread`` so the event loop keeps serving other requests.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        catalog_service: CatalogService,
        mapping_provider: MappingProvider,
        dispatcher: NotificationDispatcher,
        restaurant_address: str | None,
        status_policy: StatusPolicy | None = None,
    ) -> None:
        """Initialize the order service.

        Args:
            order_repository: Persistence for orders and embedded tracking
            catalog_service: Food item lookups for pricing
            mapping_provider: Geocoding and routing provider
            dispatcher: Queue for real-time tracking and status events
            restaurant_address: Address every delivery route starts from
            status_policy: Configurable parts of the status state machine
        """
        self.order_repository = order_repository
        self.catalog_service = catalog_service
        self.mapping_provider = mapping_provider
        self.dispatcher = dispatcher
        self.restaurant_address = restaurant_address
        self.status_policy = status_policy or StatusPolicy()
        self._restaurant_location: Location | None = None

    @traced("order.create")
    async def create_order(
        self, items: list[OrderItemInput], delivery_address: str, principal: Principal
    ) -> Order:
        """Create a pending order priced from the current catalog.

        Every referenced item is checked before anything is written, so a
        rejected order leaves no trace in the store. Repeated lines for the
        same item are kept as separate lines.

        Args:
            items: Requested catalog items and quantities
            delivery_address: Where the order is delivered
            principal: Caller placing the order; becomes its owner

        Returns:
            Order: The persisted order

        Raises:
            ValidationError: If no items are given, a quantity is below 1 or
                the delivery address is blank
            ItemNotFoundError: If a referenced item does not exist
            ItemUnavailableError: If a referenced item cannot be ordered
        """
        if not items:
            raise ValidationError("An order needs at least one item")

        invalid = [item.food_item_id for item in items if item.quantity < 1]
        if invalid:
            raise ValidationError(
                "Item quantity must be at least 1", details={"foodItemIds": invalid}
            )

        if not delivery_address or not delivery_address.strip():
            raise ValidationError("A delivery address is required")

        catalog = await self.catalog_service.get_food_items(
            [item.food_item_id for item in items]
        )

        line_items: list[OrderLineItem] = []
        for item in items:
            food_item = catalog.get(item.food_item_id)
            if food_item is None:
                record_order_rejected("item_not_found")
                raise ItemNotFoundError(item.food_item_id)
            if not food_item.is_available:
                record_order_rejected("item_unavailable")
                raise ItemUnavailableError(food_item.id, food_item.name)

            line_items.append(
                OrderLineItem(
                    food_item_id=food_item.id,
                    quantity=item.quantity,
                    unit_price_at_order_time=food_item.price,
                )
            )

        order = Order.new(
            user_id=principal.user_id,
            line_items=line_items,
            delivery_address=delivery_address.strip(),
        )
        saved = await asyncio.to_thread(self.order_repository.create_order, order)

        record_order_created(len(saved.line_items))
        logger.info(
            f"Created order {saved.id} for user {saved.user_id} "
            f"({len(saved.line_items)} lines, total {saved.total_amount})"
        )
        return saved

    async def get_order(self, order_id: str, principal: Principal) -> Order:
        """Return an order the caller is allowed to see.

        Customers only see their own orders; someone else's order is reported
        as not found so its existence is not revealed.

        Raises:
            OrderNotFoundError: If the order does not exist or is not visible
        """
        order = await asyncio.to_thread(self.order_repository.get_order, order_id)
        if order is None or not (principal.is_admin or order.user_id == principal.user_id):
            raise OrderNotFoundError(order_id)
        return order

    async def get_tracking(self, order_id: str, principal: Principal) -> TrackingInfo:
        """Return the tracking snapshot of an order.

        Raises:
            OrderNotFoundError: If the order does not exist or is not visible
            TrackingNotFoundError: If the order has never been located
        """
        order = await self.get_order(order_id, principal)
        if order.tracking is None:
            raise TrackingNotFoundError(order_id)
        return order.tracking

    @traced("order.update_location")
    async def update_location(
        self, order_id: str, location: Location, principal: Principal
    ) -> TrackingInfo:
        """Record a new courier position and recompute the ETA.

        Geocoding and routing happen before the write; if either fails the
        stored tracking is left as it was.

        Args:
            order_id: Order being delivered
            location: Current courier position
            principal: Caller; must be an admin

        Returns:
            TrackingInfo: The persisted tracking snapshot

        Raises:
            ForbiddenError: If the caller is not an admin
            OrderNotFoundError: If the order does not exist
            InvalidStatusTransitionError: If the order is already delivered or cancelled
            ExternalServiceError: If geocoding or routing fails
        """
        _require_admin(principal, "update delivery location")

        order = await asyncio.to_thread(self.order_repository.get_order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if is_terminal(order.status):
            raise InvalidStatusTransitionError(
                order.status.value, OrderStatus.OUT_FOR_DELIVERY.value
            )

        origin = await self.get_restaurant_location()
        route = await self.mapping_provider.route(origin, location)
        now = datetime.now(UTC)

        tracking = TrackingInfo(
            order_id=order_id,
            current_location=location,
            estimated_arrival=self.mapping_provider.estimate_arrival(route, now),
            tracking_status=TrackingStatus.IN_TRANSIT,
            last_updated=now,
        )

        updated = await asyncio.to_thread(self.order_repository.update_tracking, order_id, tracking)
        if updated is None:
            raise OrderNotFoundError(order_id)

        record_tracking_update(tracking.tracking_status.value)
        logger.info(
            f"Order {order_id} located at {location.as_coordinates()}, "
            f"ETA {tracking.estimated_arrival.isoformat()}"
        )

        self._publish_tracking(order_id, tracking)
        return tracking

    @traced("order.mark_arrived")
    async def mark_arrived(self, order_id: str, principal: Principal) -> TrackingInfo:
        """Mark an en-route order as arrived and delivered.

        Tracking status and order status are written together in one item
        update. Allowed from any non-terminal status once the order has been
        located at least once.

        Args:
            order_id: Order that has arrived
            principal: Caller; must be an admin

        Returns:
            TrackingInfo: The persisted tracking snapshot

        Raises:
            ForbiddenError: If the caller is not an admin
            OrderNotFoundError: If the order does not exist
            NoTrackingInfoError: If the order was never located
            InvalidStatusTransitionError: If the order is delivered or cancelled
        """
        _require_admin(principal, "mark orders as arrived")

        order = await asyncio.to_thread(self.order_repository.get_order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.tracking is None:
            raise NoTrackingInfoError(order_id)
        if is_terminal(order.status):
            raise InvalidStatusTransitionError(order.status.value, OrderStatus.DELIVERED.value)

        tracking = order.tracking.model_copy(
            update={
                "tracking_status": TrackingStatus.ARRIVED,
                "last_updated": datetime.now(UTC),
            }
        )

        updated = await asyncio.to_thread(
            self.order_repository.update_tracking_and_status,
            order_id,
            tracking,
            OrderStatus.DELIVERED,
        )
        if updated is None:
            raise OrderNotFoundError(order_id)

        record_tracking_update(tracking.tracking_status.value)
        logger.info(f"Order {order_id} arrived and marked delivered")

        self._publish_tracking(order_id, tracking)
        self._publish_order_status(order_id, OrderStatus.DELIVERED)
        return tracking

    @traced("order.update_status")
    async def update_status(
        self, order_id: str, status: OrderStatus, principal: Principal
    ) -> Order:
        """Move an order to a new status along an allowed transition.

        Raises:
            ForbiddenError: If the caller is not an admin
            OrderNotFoundError: If the order does not exist
            InvalidStatusTransitionError: If the transition is not allowed
        """
        _require_admin(principal, "change order status")

        order = await asyncio.to_thread(self.order_repository.get_order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        ensure_transition(order.status, status, self.status_policy)

        updated = await asyncio.to_thread(self.order_repository.update_status, order_id, status)
        if updated is None:
            raise OrderNotFoundError(order_id)

        logger.info(f"Order {order_id} status changed {order.status.value} -> {status.value}")
        return updated

    async def list_orders(self, principal: Principal, query: OrderQuery) -> OrderListResult:
        """List orders visible to the caller.

        The owner filter is always the caller for non-admins, whatever the
        query says.
        """
        if not principal.is_admin:
            query = query.model_copy(update={"owner_id": principal.user_id})
        return await asyncio.to_thread(self.order_repository.list_orders, query)

    async def get_stats(self, principal: Principal) -> OrderStats:
        owner_id = None if principal.is_admin else principal.user_id
        return await asyncio.to_thread(self.order_repository.aggregate_stats, owner_id)

    async def get_restaurant_location(self) -> Location:
        """Return the geocoded restaurant address.

        The first successful lookup is cached for the lifetime of the
        service; failures are not cached.

        Raises:
            ConfigurationError: If no restaurant address is configured
            ExternalServiceError: If geocoding fails
        """
        if not self.restaurant_address:
            raise ConfigurationError("Restaurant address is not configured")

        if self._restaurant_location is None:
            self._restaurant_location = await self.mapping_provider.geocode(
                self.restaurant_address
            )
            logger.info(
                f"Restaurant located at {self._restaurant_location.as_coordinates()}"
            )

        return self._restaurant_location

    def _publish_tracking(self, order_id: str, tracking: TrackingInfo) -> None:
        try:
            self.dispatcher.publish_tracking(order_id, tracking)
        except Exception as e:
            logger.error(f"Failed to publish tracking update for order {order_id}: {e}")

    def _publish_order_status(self, order_id: str, status: OrderStatus) -> None:
        try:
            self.dispatcher.publish_order_status(order_id, status)
        except Exception as e:
            logger.error(f"Failed to publish status change for order {order_id}: {e}")
