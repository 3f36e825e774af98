"""Google Maps mapping provider.

This adapter wraps the Geocoding and Directions web services. Each request
runs under an explicit timeout and transient failures are retried with
exponential backoff before the adapter gives up.
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from food_delivery_service.adapters.base_adapter import MappingProvider
from food_delivery_service.errors import ExternalServiceError, ExternalServiceTimeout
from food_delivery_service.models.order_models import DeliveryRoute, Location
from food_delivery_service.observability.metrics import record_mapping_call

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api"

# Provider statuses worth another attempt; everything else non-OK is permanent.
TRANSIENT_PROVIDER_STATUSES = frozenset({"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"})
TRANSIENT_HTTP_STATUSES = frozenset({429, 500, 502, 503, 504})


class GoogleMapsAdapter(MappingProvider):
    """Adapter for the Google Maps Geocoding and Directions APIs."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 5.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        """Initialize Google Maps adapter.

        Args:
            api_key: Google Maps API key
            base_url: Base URL of the Maps web services
            timeout_seconds: Timeout applied to every request
            max_attempts: Total attempts for transient failures (at least 1)
            backoff_seconds: Delay before the first retry, doubled on each retry

        Raises:
            ValueError: If api_key is empty or max_attempts is below 1
        """
        if not api_key:
            raise ValueError("Google Maps API key is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        super().__init__("google_maps")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    async def geocode(self, address: str) -> Location:
        """Geocode an address with the Geocoding API.

        Args:
            address: Free-text address

        Returns:
            Location: First result's coordinates and formatted address
        """
        if not address or not address.strip():
            raise ExternalServiceError("Geocoding failed: address is empty")

        data = await self._request("geocode/json", {"address": address}, operation="geocode")

        results = data.get("results") or []
        if data.get("status") == "ZERO_RESULTS" or not results:
            raise ExternalServiceError(
                "Geocoding failed: no results found for the given address",
                details={"address": address},
            )

        result = results[0]
        coordinates = result["geometry"]["location"]
        return Location(
            lat=coordinates["lat"],
            lng=coordinates["lng"],
            address=result.get("formatted_address"),
        )

    async def route(
        self,
        origin: Location,
        destination: Location,
        waypoints: list[Location] | None = None,
    ) -> DeliveryRoute:
        """Compute a driving route with the Directions API.

        Args:
            origin: Start of the route
            destination: End of the route
            waypoints: Optional intermediate stops

        Returns:
            DeliveryRoute: Distance and duration summed over all legs
        """
        params: dict[str, Any] = {
            "origin": origin.as_coordinates(),
            "destination": destination.as_coordinates(),
        }
        if waypoints:
            params["waypoints"] = "|".join(point.as_coordinates() for point in waypoints)

        data = await self._request("directions/json", params, operation="route")

        routes = data.get("routes") or []
        legs = routes[0].get("legs") if routes else None
        if data.get("status") == "ZERO_RESULTS" or not legs:
            raise ExternalServiceError(
                "Route calculation failed: no route found between the given locations",
                details={
                    "origin": origin.as_coordinates(),
                    "destination": destination.as_coordinates(),
                },
            )

        return DeliveryRoute(
            origin=origin,
            destination=destination,
            waypoints=waypoints,
            distance_meters=sum(int(leg["distance"]["value"]) for leg in legs),
            duration_seconds=sum(int(leg["duration"]["value"]) for leg in legs),
        )

    async def _request(self, path: str, params: dict[str, Any], operation: str) -> dict[str, Any]:
        """Issue a GET with timeout and bounded retry.

        Returns:
            The decoded JSON body of a response whose provider status is
            OK or ZERO_RESULTS.

        Raises:
            ExternalServiceTimeout: If every attempt timed out
            ExternalServiceError: On permanent failures or exhausted retries
        """
        url = f"{self.base_url}/{path}"
        query = {**params, "key": self.api_key}
        only_timeouts = True
        last_error = "no attempt made"

        for attempt in range(self.max_attempts):
            if attempt > 0:
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"Retrying {operation} after failure ({last_error}), "
                    f"attempt {attempt + 1}/{self.max_attempts}"
                )
                await asyncio.sleep(delay)

            started = time.perf_counter()
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(url, params=query)
            except httpx.TimeoutException as e:
                last_error = f"timeout: {e}"
                continue
            except httpx.RequestError as e:
                only_timeouts = False
                last_error = f"request error: {e}"
                continue
            finally:
                record_mapping_call(operation, time.perf_counter() - started)

            only_timeouts = False

            if response.status_code in TRANSIENT_HTTP_STATUSES:
                last_error = f"HTTP {response.status_code}"
                continue

            if response.status_code >= 400:
                raise ExternalServiceError(
                    f"Mapping provider {operation} failed with HTTP {response.status_code}"
                )

            try:
                data: dict[str, Any] = response.json()
            except ValueError as e:
                raise ExternalServiceError(
                    f"Mapping provider returned malformed JSON for {operation}"
                ) from e

            status = data.get("status", "OK")
            if status in TRANSIENT_PROVIDER_STATUSES:
                last_error = f"provider status {status}"
                continue

            if status not in ("OK", "ZERO_RESULTS"):
                message = data.get("error_message") or status
                raise ExternalServiceError(
                    f"Mapping provider {operation} failed: {message}",
                    details={"providerStatus": status},
                )

            return data

        logger.error(f"Mapping provider {operation} failed after {self.max_attempts} attempts: {last_error}")
        if only_timeouts:
            raise ExternalServiceTimeout(
                f"Mapping provider {operation} timed out after {self.max_attempts} attempts"
            )
        raise ExternalServiceError(
            f"Mapping provider {operation} failed after {self.max_attempts} attempts: {last_error}"
        )
