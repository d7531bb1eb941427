"""Outbound messaging -- publisher interface, in-process transport and delivery."""

from inventory_sync.messaging.dispatcher import MessageDispatcher, log_delivery
from inventory_sync.messaging.publisher import (
    TRADE_TOPIC,
    MessagePublisher,
    PublishedMessage,
    QueuePublisher,
)

__all__ = [
    "TRADE_TOPIC",
    "MessageDispatcher",
    "MessagePublisher",
    "PublishedMessage",
    "QueuePublisher",
    "log_delivery",
]
