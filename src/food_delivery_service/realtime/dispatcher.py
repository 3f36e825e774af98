"""Queue between committed order writes and the real-time notifier.

The order service publishes an event only after its write has completed, and
publishing never waits on a client. A single worker task delivers events in
publish order; a delivery failure is logged and counted, never propagated.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from food_delivery_service.errors import BroadcastError, NotInitializedError
from food_delivery_service.models.order_models import OrderStatus, TrackingInfo
from food_delivery_service.observability.metrics import record_broadcast_failure
from food_delivery_service.realtime.notifier import RealtimeNotifier

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    TRACKING = "tracking"
    ORDER_STATUS = "order_status"


@dataclass(frozen=True)
class NotificationEvent:
    """One event waiting to be broadcast.

    Attributes:
        kind: Which channel family the event goes to
        order_id: Order the event is about
        tracking: Tracking payload for tracking events
        status: New status for order status events
        timestamp: When the change was committed
    """

    kind: EventKind
    order_id: str
    tracking: TrackingInfo | None = None
    status: OrderStatus | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class NotificationDispatcher:
    """Delivers notification events to the notifier from a background task."""

    def __init__(self, notifier: RealtimeNotifier, max_queue_size: int = 1000) -> None:
        """Initialize the dispatcher.

        Args:
            notifier: Broadcast hub the events are delivered to
            max_queue_size: Events allowed to wait before publishing fails
        """
        self.notifier = notifier
        self.max_queue_size = max_queue_size
        self._queue: asyncio.Queue[NotificationEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending_events(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the delivery worker on the running event loop."""
        if self.is_running:
            logger.warning("Notification dispatcher is already running, ignoring")
            return

        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker = asyncio.create_task(self._run(self._queue), name="notification-dispatcher")
        logger.info("Notification dispatcher started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Deliver what is already queued, then stop the worker.

        Args:
            drain_timeout: Seconds to wait for queued events before giving up
        """
        if self._worker is None or self._queue is None:
            logger.warning("Notification dispatcher is not running, nothing to stop")
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except TimeoutError:
            logger.warning(
                f"Dropping {self._queue.qsize()} undelivered events after {drain_timeout}s"
            )

        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker

        self._worker = None
        self._queue = None
        logger.info("Notification dispatcher stopped")

    async def wait_until_idle(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    def publish_tracking(self, order_id: str, tracking: TrackingInfo) -> None:
        """Queue a tracking update for broadcast.

        Raises:
            NotInitializedError: If the dispatcher is not running
            BroadcastError: If the queue is full
        """
        self._enqueue(NotificationEvent(kind=EventKind.TRACKING, order_id=order_id, tracking=tracking))

    def publish_order_status(self, order_id: str, status: OrderStatus) -> None:
        """Queue an order status change for broadcast.

        Raises:
            NotInitializedError: If the dispatcher is not running
            BroadcastError: If the queue is full
        """
        self._enqueue(
            NotificationEvent(kind=EventKind.ORDER_STATUS, order_id=order_id, status=status)
        )

    def _enqueue(self, event: NotificationEvent) -> None:
        if self._queue is None or not self.is_running:
            raise NotInitializedError("Notification dispatcher is not running")

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as e:
            record_broadcast_failure(event.kind.value)
            raise BroadcastError(
                f"Notification queue is full ({self.max_queue_size} events), "
                f"dropping {event.kind.value} event for order {event.order_id}"
            ) from e

    async def _run(self, queue: asyncio.Queue[NotificationEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self._deliver(event)
            except Exception as e:
                # a failed delivery is counted and the worker moves on
                logger.error(
                    f"Failed to broadcast {event.kind.value} event for order {event.order_id}: {e}"
                )
                record_broadcast_failure(event.kind.value)
            finally:
                queue.task_done()

    async def _deliver(self, event: NotificationEvent) -> None:
        if event.kind == EventKind.TRACKING and event.tracking is not None:
            await self.notifier.broadcast_tracking(event.order_id, event.tracking)
        elif event.kind == EventKind.ORDER_STATUS and event.status is not None:
            await self.notifier.broadcast_order_status(event.order_id, event.status, event.timestamp)
        else:
            raise ValueError(f"Malformed notification event: {event}")
