# tableorder/services/notification_service.py
import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from tableorder.core.config import settings
from tableorder.db.base_class import utcnow
from tableorder.schemas.order import OrderDetail, OrderEvent
from tableorder.services.redis_service import RedisClient, redis_client

logger = logging.getLogger(__name__)

SnapshotReader = Callable[[], List[OrderDetail]]


class OrderEventPublisher:
    """
    Receives one event per committed order/order item change.
    Every event carries the full active-order list, so subscribers never need to merge deltas.
    """

    def __init__(self):
        # Held while a snapshot is read and sent, so events leave in the order their snapshots were read
        self._snapshot_lock = threading.Lock()
        self._sequence = 0

    def publish(self, event: OrderEvent) -> None:
        raise NotImplementedError

    def publish_latest(self, event: str, order_id: Optional[str], read_orders: SnapshotReader) -> OrderEvent:
        with self._snapshot_lock:
            orders = read_orders()
            self._sequence += 1
            message = OrderEvent(
                event=event, order_id=order_id, sequence=self._sequence, timestamp=utcnow(), orders=orders
            )
            self.publish(message)
        return message

    def current_snapshot(self, read_orders: SnapshotReader) -> OrderEvent:
        """Snapshot for a new subscriber; its sequence is the last one already published."""
        with self._snapshot_lock:
            orders = read_orders()
            return OrderEvent(event="snapshot", sequence=self._sequence, timestamp=utcnow(), orders=orders)


class RedisOrderEventPublisher(OrderEventPublisher):
    def __init__(self, client: RedisClient = redis_client, channel: str = settings.EVENTS_CHANNEL):
        super().__init__()
        self.client = client
        self.channel = channel

    def publish(self, event: OrderEvent) -> None:
        # The change is already committed; a lost notification only delays pollers
        self.client.publish_message(self.channel, event.model_dump_json())


class InMemoryOrderEventPublisher(OrderEventPublisher):
    """
    Single-process fan-out, used by tests and by deployments without Redis.
    Each subscriber is an asyncio.Queue fed from whichever thread publishes.
    """

    def __init__(self, history_size: int = 100):
        super().__init__()
        # Most recent events only
        self.events: Deque[OrderEvent] = deque(maxlen=history_size)
        self._subscribers: List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._lock = threading.Lock()

    def publish(self, event: OrderEvent) -> None:
        with self._lock:
            self.events.append(event)
            for loop, subscriber in list(self._subscribers):
                try:
                    loop.call_soon_threadsafe(subscriber.put_nowait, event)
                except RuntimeError:
                    logger.warning("Dropping a subscriber whose event loop is closed")
                    self._subscribers.remove((loop, subscriber))

    def subscribe(self) -> asyncio.Queue:
        """Must be called from the event loop that consumes the queue."""
        subscriber: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), subscriber))
        return subscriber

    def unsubscribe(self, subscriber: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers = [(loop, q) for loop, q in self._subscribers if q is not subscriber]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


def build_publisher(backend: str = settings.EVENTS_BACKEND) -> OrderEventPublisher:
    if backend == "memory":
        return InMemoryOrderEventPublisher()
    if backend != "redis":
        logger.warning(f"Unknown EVENTS_BACKEND \"{backend}\", falling back to redis")
    return RedisOrderEventPublisher()


event_publisher = build_publisher()
