"""Base adapter for mapping provider integrations.

This module defines the abstract base class that geocoding/routing providers
must implement. Unlike a best-effort integration, a failed lookup is never
papered over with default coordinates: implementations raise
``ExternalServiceError`` and the caller fails the operation.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

from food_delivery_service.models.order_models import DeliveryRoute, Location


class MappingProvider(ABC):
    """Abstract base class for mapping providers.

    The adapter follows a simple error handling pattern:
    - geocode raises ExternalServiceError when no result is available
    - route raises ExternalServiceError when no route is available
    - ExternalServiceTimeout signals that the provider never answered in time
    """

    def __init__(self, provider_name: str) -> None:
        """Initialize the mapping provider.

        Args:
            provider_name: Name of the mapping provider (e.g., 'google_maps')
        """
        self.provider_name = provider_name

    @abstractmethod
    async def geocode(self, address: str) -> Location:
        """Convert a free-text address to coordinates.

        Args:
            address: Address to look up

        Returns:
            Location: Coordinates plus the provider's formatted address

        Raises:
            ExternalServiceError: If the provider returns no result or fails
        """

    @abstractmethod
    async def route(
        self,
        origin: Location,
        destination: Location,
        waypoints: list[Location] | None = None,
    ) -> DeliveryRoute:
        """Compute a route between two locations.

        Args:
            origin: Start of the route
            destination: End of the route
            waypoints: Optional intermediate stops

        Returns:
            DeliveryRoute: Total distance and duration over every leg

        Raises:
            ExternalServiceError: If no route is found or the provider fails
        """

    def estimate_arrival(self, route: DeliveryRoute, from_time: datetime | None = None) -> datetime:
        """Return the arrival time for a route: ``from_time + duration``."""
        start = from_time or datetime.now(UTC)
        return start + timedelta(seconds=route.duration_seconds)
