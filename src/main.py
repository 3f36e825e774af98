"""Main application entry point for the food delivery order service.

This module is the composition root: it reads configuration from the
environment, builds every collaborator once and wires them into the FastAPI
application.
"""

import logging
import os
from typing import Any

import boto3
from botocore.config import Config
from fastapi import FastAPI

from food_delivery_service.adapters.google_maps_adapter import DEFAULT_BASE_URL, GoogleMapsAdapter
from food_delivery_service.auth.token_validator import TokenValidator
from food_delivery_service.handlers.api_handler import create_app
from food_delivery_service.observability import configure_logging, setup_observability
from food_delivery_service.realtime.dispatcher import NotificationDispatcher
from food_delivery_service.realtime.notifier import RealtimeNotifier
from food_delivery_service.repositories.food_item_repository import FoodItemRepository
from food_delivery_service.repositories.order_repository import OrderRepository
from food_delivery_service.services.catalog_service import CatalogService
from food_delivery_service.services.order_service import OrderService
from food_delivery_service.services.order_status import StatusPolicy

logger = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} must be set in environment")
    return value


def _env_flag(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {"1", "true", "yes"}


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    # Bounded pool shared by the worker threads running repository calls
    client_config = Config(
        max_pool_connections=int(os.getenv("DYNAMODB_MAX_POOL_CONNECTIONS", "10")),
        retries={"max_attempts": 3, "mode": "standard"},
    )

    if endpoint_url:
        # Local DynamoDB - use environment variables or defaults for credentials
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            config=client_config,
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    # Production - boto3 will use default credential chain (IAM role, env vars, etc.)
    return boto3.resource("dynamodb", region_name=region, config=client_config)


def create_mapping_provider() -> GoogleMapsAdapter:
    """Create the Google Maps adapter from environment variables.

    Raises:
        ValueError: If GOOGLE_MAPS_API_KEY is not set
    """
    return GoogleMapsAdapter(
        api_key=_require_env("GOOGLE_MAPS_API_KEY"),
        base_url=os.getenv("GOOGLE_MAPS_BASE_URL", DEFAULT_BASE_URL),
        timeout_seconds=float(os.getenv("MAPS_TIMEOUT_SECONDS", "5")),
        max_attempts=int(os.getenv("MAPS_MAX_ATTEMPTS", "3")),
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    Returns:
        Configured FastAPI application instance

    Raises:
        ValueError: If required configuration is missing
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing food delivery service...")

    restaurant_address = _require_env("RESTAURANT_ADDRESS")
    token_validator = TokenValidator(
        secret_key=_require_env("JWT_SECRET_KEY"),
        algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
    )
    mapping_provider = create_mapping_provider()

    dynamodb_resource = get_dynamodb_resource()
    orders_table = os.getenv("DYNAMODB_ORDERS_TABLE", "food-delivery-orders")
    food_items_table = os.getenv("DYNAMODB_FOOD_ITEMS_TABLE", "food-delivery-food-items")

    order_repository = OrderRepository(dynamodb_resource=dynamodb_resource, table_name=orders_table)
    food_item_repository = FoodItemRepository(
        dynamodb_resource=dynamodb_resource, table_name=food_items_table
    )

    logger.info(f"Repositories configured - orders: {orders_table}, food items: {food_items_table}")

    notifier = RealtimeNotifier(
        token_validator=token_validator,
        max_connections=int(os.getenv("MAX_WEBSOCKET_CONNECTIONS", "1000")),
    )
    dispatcher = NotificationDispatcher(
        notifier=notifier,
        max_queue_size=int(os.getenv("NOTIFICATION_QUEUE_SIZE", "1000")),
    )

    catalog_service = CatalogService(repository=food_item_repository)
    order_service = OrderService(
        order_repository=order_repository,
        catalog_service=catalog_service,
        mapping_provider=mapping_provider,
        dispatcher=dispatcher,
        restaurant_address=restaurant_address,
        status_policy=StatusPolicy(
            allow_cancel_after_ready=_env_flag("ALLOW_CANCEL_AFTER_READY")
        ),
    )

    logger.info("Services initialized")

    cors_origins = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()
    ]

    app = create_app(
        order_service=order_service,
        catalog_service=catalog_service,
        notifier=notifier,
        dispatcher=dispatcher,
        token_validator=token_validator,
        cors_origins=cors_origins,
        expose_error_details=os.getenv("ENVIRONMENT", "development") != "production",
    )

    setup_observability(app)

    logger.info("Food delivery service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
