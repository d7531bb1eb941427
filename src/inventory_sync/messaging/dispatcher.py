"""Background delivery of queued publications.

MessageDispatcher drains a QueuePublisher's queue and hands each message to
a delivery callable (the bus transport). Delivery failures are logged and
the message is dropped; the loop keeps running so the queue never fills up
behind one bad message.
"""

import asyncio
from collections.abc import Awaitable, Callable

from inventory_sync.logging import get_logger
from inventory_sync.messaging.publisher import PublishedMessage

logger = get_logger(__name__)

DeliverFn = Callable[[PublishedMessage], Awaitable[None]]


async def log_delivery(message: PublishedMessage) -> None:
    """Default transport: record the message in the service log."""
    logger.info(
        "trade_list_delivered",
        topic=message.topic,
        trading_system_id=message.payload.get("tradingSystemId"),
        trades=len(message.payload.get("trades", [])),
    )


class MessageDispatcher:
    """Drains a publication queue in a background task.

    Args:
        queue: Queue filled by a QueuePublisher.
        deliver: Coroutine function sending one message to the bus.
        drain_timeout: Seconds stop() waits for queued messages to go out.
    """

    def __init__(
        self,
        queue: asyncio.Queue[PublishedMessage],
        deliver: DeliverFn = log_delivery,
        drain_timeout: float = 5.0,
    ) -> None:
        self._queue = queue
        self._deliver = deliver
        self._drain_timeout = drain_timeout
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._delivered = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def delivered_count(self) -> int:
        return self._delivered

    @property
    def failed_count(self) -> int:
        return self._failed

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="message_dispatcher")
        logger.info("message_dispatcher_started")

    async def stop(self) -> None:
        """Deliver what is already queued (bounded by the drain timeout), then stop."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("message_dispatcher_drain_timeout", pending=self._queue.qsize())
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            "message_dispatcher_stopped",
            delivered=self._delivered,
            failed=self._failed,
        )

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
                self._delivered += 1
            except Exception as e:
                self._failed += 1
                logger.error(
                    "message_delivery_failed",
                    topic=message.topic,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
