"""Message publication interface and the in-process queue transport.

The scanner depends only on MessagePublisher. QueuePublisher hands messages
to an asyncio.Queue drained by MessageDispatcher and keeps the most recent
publications for the status API; a broker-backed publisher plugs in behind
the same interface.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field

from inventory_sync.exceptions import PublishError
from inventory_sync.logging import get_logger

logger = get_logger(__name__)

# Exchange "runtime", source "trade"
TRADE_TOPIC = "runtime.trade"


@dataclass
class PublishedMessage:
    topic: str
    payload: dict
    published_at: float = field(default_factory=time.time)


class MessagePublisher(ABC):
    """Abstract message bus publisher."""

    @abstractmethod
    async def publish(self, topic: str, payload: dict) -> None:
        """Deliver one message. Raises PublishError on failure."""
        ...


class QueuePublisher(MessagePublisher):
    """Bounded in-process publisher.

    A MessageDispatcher drains the queue; while the queue is full
    ``publish`` waits up to ``put_timeout`` seconds for room.

    Args:
        max_size: Queue capacity.
        recent_size: How many publications to keep for inspection.
        put_timeout: Seconds to wait for room; 0 fails at once on a full queue.
    """

    def __init__(
        self,
        max_size: int = 1000,
        recent_size: int = 50,
        put_timeout: float = 30.0,
    ) -> None:
        self._queue: asyncio.Queue[PublishedMessage] = asyncio.Queue(maxsize=max_size)
        self._recent: deque[PublishedMessage] = deque(maxlen=recent_size)
        self._put_timeout = put_timeout
        self._published = 0

    @property
    def queue(self) -> asyncio.Queue[PublishedMessage]:
        return self._queue

    @property
    def published_count(self) -> int:
        return self._published

    async def publish(self, topic: str, payload: dict) -> None:
        message = PublishedMessage(topic=topic, payload=payload)
        try:
            if self._put_timeout > 0:
                await asyncio.wait_for(self._queue.put(message), timeout=self._put_timeout)
            else:
                self._queue.put_nowait(message)
        except (asyncio.QueueFull, asyncio.TimeoutError) as e:
            raise PublishError(
                f"Publication queue full ({self._queue.maxsize} messages)", topic=topic
            ) from e
        self._recent.append(message)
        self._published += 1
        logger.debug("message_published", topic=topic, pending=self._queue.qsize())

    def recent(self) -> list[PublishedMessage]:
        """Most recent publications, newest first."""
        return list(reversed(self._recent))
