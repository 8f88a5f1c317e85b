"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .event_consumer import EventConsumer

__all__ = [
    "BaseConsumer",
    "EventConsumer",
]
