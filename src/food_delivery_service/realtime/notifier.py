"""WebSocket broadcast hub for tracking and order status events.

The notifier is constructed by the composition root and handed to whoever
needs it; there is no module-level instance. ``initialize`` binds it to the
FastAPI application that serves the WebSocket route, ``shutdown`` disconnects
every client and releases that binding.

Events are broadcasts, not directed messages: every connected client receives
every order's events and filters by channel name (``tracking:{order_id}`` and
``order:{order_id}:status``). The client set is only touched from the event
loop thread, so no lock guards it.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from food_delivery_service.auth.token_validator import TokenValidator
from food_delivery_service.errors import AuthError, NotInitializedError
from food_delivery_service.models.auth_models import Principal
from food_delivery_service.models.order_models import OrderStatus, TrackingInfo
from food_delivery_service.observability.metrics import record_connection_change

logger = logging.getLogger(__name__)

# WebSocket close codes (RFC 6455 / IANA registry)
CLOSE_GOING_AWAY = 1001
CLOSE_POLICY_VIOLATION = 1008
CLOSE_TRY_AGAIN_LATER = 1013


def tracking_channel(order_id: str) -> str:
    return f"tracking:{order_id}"


def order_status_channel(order_id: str) -> str:
    return f"order:{order_id}:status"


class RealtimeNotifier:
    """Maintains connected WebSocket clients and broadcasts events to them."""

    def __init__(
        self,
        token_validator: TokenValidator | None = None,
        max_connections: int = 1000,
    ) -> None:
        """Initialize the notifier.

        Args:
            token_validator: Verifies the optional ``token`` query parameter
            max_connections: Upper bound on simultaneously connected clients
        """
        self.token_validator = token_validator
        self.max_connections = max_connections
        self._clients: set[WebSocket] = set()
        self._principals: dict[WebSocket, Principal | None] = {}
        self._app: FastAPI | None = None
        self._path: str | None = None

    @property
    def is_initialized(self) -> bool:
        return self._app is not None

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    def initialize(self, app: FastAPI, path: str = "/ws") -> None:
        """Bind the notifier to an application's WebSocket route.

        Calling this more than once is a no-op that logs a warning.

        Args:
            app: FastAPI application serving the real-time channel
            path: Route path of the WebSocket endpoint
        """
        if self._app is not None:
            logger.warning("Real-time notifier is already initialized, ignoring")
            return

        already_routed = any(getattr(route, "path", None) == path for route in app.router.routes)
        if not already_routed:
            app.add_api_websocket_route(path, self.websocket_endpoint)

        self._app = app
        self._path = path
        logger.info(f"Real-time notifier listening on {path}")

    async def shutdown(self) -> None:
        """Disconnect every client and release the transport binding.

        Safe to call when not initialized; that case logs a warning.
        """
        if self._app is None:
            logger.warning("Real-time notifier is not initialized, nothing to shut down")
            return

        clients = list(self._clients)
        self._clients.clear()
        self._principals.clear()

        for client in clients:
            record_connection_change(-1)
            try:
                await client.close(code=CLOSE_GOING_AWAY)
            except Exception as e:
                logger.debug(f"Ignoring error while closing client: {e}")

        self._app = None
        logger.info(f"Real-time notifier shut down, disconnected {len(clients)} clients")

    async def websocket_endpoint(self, websocket: WebSocket, token: str | None = None) -> None:
        """Serve one client connection until it disconnects."""
        principal: Principal | None = None
        if token:
            if self.token_validator is None:
                await websocket.close(code=CLOSE_POLICY_VIOLATION)
                return
            try:
                principal = self.token_validator.validate(token)
            except AuthError:
                logger.info("Rejected real-time connection with invalid token")
                await websocket.close(code=CLOSE_POLICY_VIOLATION)
                return

        if not await self.connect(websocket, principal):
            return

        try:
            while True:
                # Clients only listen; inbound frames are keepalives.
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(websocket)

    async def connect(self, websocket: WebSocket, principal: Principal | None = None) -> bool:
        """Accept a client and add it to the broadcast set.

        Returns:
            True if the client was accepted, False if it was refused
        """
        if self._app is None:
            await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
            return False

        if len(self._clients) >= self.max_connections:
            logger.warning(f"Refusing real-time connection: limit of {self.max_connections} reached")
            await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
            return False

        await websocket.accept()
        if self._app is None:
            await websocket.close(code=CLOSE_GOING_AWAY)
            return False

        self._clients.add(websocket)
        self._principals[websocket] = principal
        record_connection_change(1)

        user = principal.user_id if principal else "anonymous"
        logger.info(f"Real-time client connected ({user}), {len(self._clients)} connected")
        return True

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a client from the broadcast set if it is still there."""
        if websocket not in self._clients:
            return

        self._clients.discard(websocket)
        self._principals.pop(websocket, None)
        record_connection_change(-1)
        logger.info(f"Real-time client disconnected, {len(self._clients)} connected")

    async def broadcast_tracking(self, order_id: str, tracking: TrackingInfo) -> int:
        """Emit a tracking update on ``tracking:{order_id}``.

        Returns:
            Number of clients the event was delivered to

        Raises:
            NotInitializedError: If called before initialize or after shutdown
        """
        return await self._broadcast(tracking_channel(order_id), tracking.to_payload())

    async def broadcast_order_status(
        self, order_id: str, status: OrderStatus, timestamp: datetime | None = None
    ) -> int:
        """Emit an order status change on ``order:{order_id}:status``.

        Returns:
            Number of clients the event was delivered to

        Raises:
            NotInitializedError: If called before initialize or after shutdown
        """
        payload = {
            "orderId": order_id,
            "status": status.value,
            "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
        }
        return await self._broadcast(order_status_channel(order_id), payload)

    async def _broadcast(self, channel: str, payload: dict[str, Any]) -> int:
        if self._app is None:
            raise NotInitializedError()

        clients = list(self._clients)
        if not clients:
            return 0

        message = {"event": channel, "data": payload}
        results = await asyncio.gather(
            *(client.send_json(message) for client in clients), return_exceptions=True
        )

        delivered = 0
        for client, result in zip(clients, results, strict=True):
            if isinstance(result, Exception):
                logger.warning(f"Dropping real-time client after failed send on {channel}: {result}")
                self.disconnect(client)
            else:
                delivered += 1

        logger.debug(f"Broadcast {channel} to {delivered}/{len(clients)} clients")
        return delivered
