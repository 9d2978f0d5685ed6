"""In-process message bus between the delivery context and the app context."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    """The fixed set of messages crossing the background-context boundary."""
    SILENT_NOTIFICATION = "SILENT_NOTIFICATION"
    NOTIFICATION_ACTION = "NOTIFICATION_ACTION"
    SYNC_TICK = "SYNC_TICK"


@dataclass
class BusMessage:
    kind: MessageKind
    payload: Dict[str, Any] = field(default_factory=dict)
    sent_at: datetime = field(default_factory=datetime.utcnow)


Subscriber = Callable[[BusMessage], Awaitable[Any]]


class MessageBus:
    """Delivers typed messages to the subscribers registered for their kind."""

    def __init__(self):
        self._subscribers: Dict[MessageKind, List[Subscriber]] = {kind: [] for kind in MessageKind}
        self._lock = asyncio.Lock()

    async def subscribe(self, kind: MessageKind, subscriber: Subscriber) -> None:
        """Register a subscriber; registering the same one twice is a no-op."""
        async with self._lock:
            if subscriber not in self._subscribers[kind]:
                self._subscribers[kind].append(subscriber)
        logger.debug(f"Subscribed to {kind.value}. Total subscribers: {len(self._subscribers[kind])}")

    async def unsubscribe(self, kind: MessageKind, subscriber: Subscriber) -> None:
        async with self._lock:
            if subscriber in self._subscribers[kind]:
                self._subscribers[kind].remove(subscriber)

    async def publish(self, kind: MessageKind, payload: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Deliver a message to every subscriber of its kind.

        Returns the subscribers' return values. A failing subscriber is logged
        and skipped so the others still receive the message.
        """
        message = BusMessage(kind=MessageKind(kind), payload=dict(payload or {}))

        # Copy the list to avoid modification during iteration
        async with self._lock:
            subscribers = list(self._subscribers[message.kind])

        if not subscribers:
            logger.debug(f"No subscribers for {message.kind.value}")
            return []

        results = []
        for subscriber in subscribers:
            try:
                results.append(await subscriber(message))
            except Exception as e:
                logger.error(f"Subscriber failed handling {message.kind.value}: {e}")
        return results

    def subscriber_count(self, kind: MessageKind) -> int:
        return len(self._subscribers[kind])
