"""FastAPI application for the order, tracking and catalog API."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Union

from fastapi import Depends, FastAPI, Header, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from food_delivery_service.auth.api_dependencies import get_principal_from_header, require_admin
from food_delivery_service.auth.token_validator import TokenValidator
from food_delivery_service.handlers.error_handlers import register_error_handlers
from food_delivery_service.models.api_models import (
    FoodItemCreateRequest,
    FoodItemUpdateRequest,
    HealthResponse,
    LocationUpdateRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderStatsResponse,
    ReadinessResponse,
    StatusUpdateRequest,
)
from food_delivery_service.models.auth_models import Principal
from food_delivery_service.models.menu_models import FoodCategory, FoodItem
from food_delivery_service.models.order_models import (
    Location,
    Order,
    OrderQuery,
    OrderStatus,
    SortField,
    SortOrder,
    TrackingInfo,
)
from food_delivery_service.realtime.dispatcher import NotificationDispatcher
from food_delivery_service.realtime.notifier import RealtimeNotifier
from food_delivery_service.services.catalog_service import CatalogService
from food_delivery_service.services.order_service import OrderService

logger = logging.getLogger(__name__)


def create_app(
    order_service: OrderService,
    catalog_service: CatalogService,
    notifier: RealtimeNotifier,
    dispatcher: NotificationDispatcher,
    token_validator: TokenValidator,
    cors_origins: list[str] | None = None,
    expose_error_details: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The real-time notifier is bound to the app's ``/ws`` route and the
    notification dispatcher is started when the app starts; both are torn
    down, dispatcher first, when it stops.

    Args:
        order_service: Order lifecycle operations
        catalog_service: Food item operations
        notifier: WebSocket broadcast hub
        dispatcher: Queue feeding the notifier
        token_validator: Bearer token validation
        cors_origins: Origins allowed to call the API from a browser
        expose_error_details: Include server error details in responses

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        notifier.initialize(app, path="/ws")
        dispatcher.start()
        logger.info("Food delivery service started")
        yield
        await dispatcher.stop()
        await notifier.shutdown()
        logger.info("Food delivery service stopped")

    app = FastAPI(
        title="Food Delivery Order Service",
        description="Orders, live delivery tracking and catalog API",
        version="1.0.0",
        lifespan=lifespan,
    )

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app, expose_details=expose_error_details)

    # Store services in app state for access in route handlers
    app.state.order_service = order_service
    app.state.catalog_service = catalog_service
    app.state.notifier = notifier
    app.state.dispatcher = dispatcher
    app.state.token_validator = token_validator

    def current_principal(authorization: str | None = Header(None)) -> Principal:
        """Dependency to authenticate the caller."""
        return get_principal_from_header(
            authorization=authorization, validator=app.state.token_validator
        )

    def admin_principal(principal: Principal = Depends(current_principal)) -> Principal:
        """Dependency to authenticate an admin caller."""
        return require_admin(principal)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Liveness check; does not touch dependencies."""
        return HealthResponse(status="healthy")

    @app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
    async def readiness_check() -> Union[ReadinessResponse, JSONResponse]:
        """Readiness check with dependency verification."""
        checks = {
            "dynamodb": await asyncio.to_thread(
                app.state.order_service.order_repository.check_health
            ),
            "notifications": app.state.dispatcher.is_running,
        }
        ready = all(checks.values())
        response = ReadinessResponse(status="ready" if ready else "not_ready", checks=checks)

        if not ready:
            return JSONResponse(status_code=503, content=response.to_payload())
        return response

    @app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
    async def create_order(
        body: OrderCreateRequest,
        principal: Principal = Depends(current_principal),
    ) -> Order:
        """Place an order priced from the current catalog."""
        order: Order = await app.state.order_service.create_order(
            items=body.items, delivery_address=body.delivery_address, principal=principal
        )
        return order

    @app.get("/orders", response_model=OrderListResponse, tags=["Orders"])
    async def list_orders(
        status: OrderStatus | None = None,
        start_date: datetime | None = Query(None, alias="startDate"),
        end_date: datetime | None = Query(None, alias="endDate"),
        sort_by: SortField = Query(SortField.CREATED_AT, alias="sortBy"),
        sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        principal: Principal = Depends(current_principal),
    ) -> OrderListResponse:
        """List orders; customers only ever see their own."""
        query = OrderQuery(
            status=status,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
        result = await app.state.order_service.list_orders(principal, query)
        return OrderListResponse.from_result(result, page=page, limit=limit)

    @app.get("/orders/stats", response_model=OrderStatsResponse, tags=["Orders"])
    async def get_order_stats(
        principal: Principal = Depends(current_principal),
    ) -> OrderStatsResponse:
        """Order counts and amounts per status."""
        stats = await app.state.order_service.get_stats(principal)
        return OrderStatsResponse.from_stats(stats)

    @app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
    async def get_order(
        order_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Order:
        order: Order = await app.state.order_service.get_order(order_id, principal)
        return order

    @app.patch("/orders/{order_id}/status", response_model=Order, tags=["Orders"])
    async def update_order_status(
        order_id: str,
        body: StatusUpdateRequest,
        principal: Principal = Depends(admin_principal),
    ) -> Order:
        """Move an order along the status state machine."""
        order: Order = await app.state.order_service.update_status(
            order_id, body.status, principal
        )
        return order

    @app.get("/tracking/{order_id}", response_model=TrackingInfo, tags=["Tracking"])
    async def get_tracking(
        order_id: str,
        principal: Principal = Depends(current_principal),
    ) -> TrackingInfo:
        tracking: TrackingInfo = await app.state.order_service.get_tracking(order_id, principal)
        return tracking

    @app.patch("/tracking/{order_id}", response_model=TrackingInfo, tags=["Tracking"])
    async def update_location(
        order_id: str,
        body: LocationUpdateRequest,
        principal: Principal = Depends(admin_principal),
    ) -> TrackingInfo:
        """Record the courier's current position and recompute the ETA."""
        location = Location(lat=body.lat, lng=body.lng, address=body.address)
        tracking: TrackingInfo = await app.state.order_service.update_location(
            order_id, location, principal
        )
        return tracking

    @app.post("/tracking/{order_id}/arrived", response_model=TrackingInfo, tags=["Tracking"])
    async def mark_arrived(
        order_id: str,
        principal: Principal = Depends(admin_principal),
    ) -> TrackingInfo:
        """Mark the order as arrived and delivered."""
        tracking: TrackingInfo = await app.state.order_service.mark_arrived(order_id, principal)
        return tracking

    @app.get("/restaurant/location", response_model=Location, tags=["Tracking"])
    async def get_restaurant_location() -> Location:
        location: Location = await app.state.order_service.get_restaurant_location()
        return location

    @app.get("/food-items", response_model=list[FoodItem], tags=["Catalog"])
    async def list_food_items(
        category: FoodCategory | None = None,
        available: bool | None = None,
    ) -> list[FoodItem]:
        items: list[FoodItem] = await app.state.catalog_service.list_food_items(
            category=category, available_only=available is True
        )
        if available is False:
            items = [item for item in items if not item.is_available]
        return items

    @app.get("/food-items/{food_item_id}", response_model=FoodItem, tags=["Catalog"])
    async def get_food_item(food_item_id: str) -> FoodItem:
        item: FoodItem = await app.state.catalog_service.get_food_item(food_item_id)
        return item

    @app.post("/food-items", response_model=FoodItem, status_code=201, tags=["Catalog"])
    async def create_food_item(
        body: FoodItemCreateRequest,
        _principal: Principal = Depends(admin_principal),
    ) -> FoodItem:
        item: FoodItem = await app.state.catalog_service.create_food_item(
            name=body.name,
            description=body.description,
            price=body.price,
            category=body.category,
            image_url=body.image_url,
            preparation_time_minutes=body.preparation_time_minutes,
            is_available=body.is_available,
        )
        return item

    @app.patch("/food-items/{food_item_id}", response_model=FoodItem, tags=["Catalog"])
    async def update_food_item(
        food_item_id: str,
        body: FoodItemUpdateRequest,
        _principal: Principal = Depends(admin_principal),
    ) -> FoodItem:
        item: FoodItem = await app.state.catalog_service.update_food_item(
            food_item_id, body.model_dump(exclude_unset=True)
        )
        return item

    @app.delete("/food-items/{food_item_id}", status_code=204, tags=["Catalog"])
    async def delete_food_item(
        food_item_id: str,
        _principal: Principal = Depends(admin_principal),
    ) -> Response:
        await app.state.catalog_service.delete_food_item(food_item_id)
        return Response(status_code=204)

    return app
