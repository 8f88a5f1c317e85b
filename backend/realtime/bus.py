"""
Event fan-out bus.

Maps a logical user id to the single live WebSocket connection (a channel
name) that user registered from, and delivers typed events to one user or
to everyone connected.

Delivery is fire-and-forget:
1. No live connection for the user -> nothing happens, send_to returns False
2. Channel layer errors (full channel, Redis hiccup) are logged and dropped
3. Nothing is queued for a reconnecting client; it re-fetches state instead

The bus is owned by the realtime app config (see apps.py) and handed to
services through their ``bus=`` argument, so tests build fresh instances.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

# Handler name on the consumer side ("bus.event" -> EventConsumer.bus_event)
BUS_MESSAGE_TYPE = "bus.event"

EVENT_RIDE_REQUEST = "ride_request"
EVENT_RIDE_ACCEPTED = "ride_accepted"
EVENT_RIDE_COMPLETED = "ride_completed"
EVENT_DRIVER_LOCATION = "driver_location"
EVENT_NOTIFICATION = "notification"

EVENT_TYPES = (
    EVENT_RIDE_REQUEST,
    EVENT_RIDE_ACCEPTED,
    EVENT_RIDE_COMPLETED,
    EVENT_DRIVER_LOCATION,
    EVENT_NOTIFICATION,
)


def _key(user_id: Any) -> str:
    # Ids arrive as ints from the ORM and as strings from socket messages
    return str(user_id)


class EventBus:
    """User -> connection registry plus targeted and broadcast delivery."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer
        self._connections: Dict[str, str] = {}
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    # ---------------------- Registry ----------------------

    def register(self, user_id: Any, channel_name: str) -> None:
        """
        Point user_id at channel_name.

        A user has at most one live connection: registering a new channel
        replaces the old one, and a channel that previously belonged to a
        different user is re-assigned.
        """
        key = _key(user_id)
        with self._lock:
            previous_channel = self._connections.get(key)
            if previous_channel and previous_channel != channel_name:
                self._owners.pop(previous_channel, None)

            previous_owner = self._owners.get(channel_name)
            if previous_owner and previous_owner != key:
                self._connections.pop(previous_owner, None)

            self._connections[key] = channel_name
            self._owners[channel_name] = key

        logger.debug("Registered user %s on %s", key, channel_name)

    def unregister_connection(self, channel_name: str) -> Optional[str]:
        """Forget whichever user pointed at channel_name. Returns that user id."""
        with self._lock:
            user_key = self._owners.pop(channel_name, None)
            if user_key is not None and self._connections.get(user_key) == channel_name:
                del self._connections[user_key]

        if user_key is not None:
            logger.debug("Unregistered user %s from %s", user_key, channel_name)
        return user_key

    def connection_for(self, user_id: Any) -> Optional[str]:
        with self._lock:
            return self._connections.get(_key(user_id))

    def connected_users(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    def _channels(self) -> List[str]:
        with self._lock:
            return list(self._connections.values())

    # ---------------------- Sync Delivery ----------------------

    def send_to(self, user_id: Any, event_type: str, payload: Dict[str, Any]) -> bool:
        """Deliver one event to one user. False when the user is offline or delivery failed."""
        channel_name = self.connection_for(user_id)
        if channel_name is None:
            logger.debug("Dropping %s for offline user %s", event_type, user_id)
            return False

        layer = self.channel_layer
        if layer is None:
            logger.warning("No channel layer available, dropping %s", event_type)
            return False

        try:
            async_to_sync(layer.send)(channel_name, _envelope(event_type, payload))
        except Exception as e:
            logger.warning("Failed to deliver %s to user %s: %s", event_type, user_id, e)
            return False
        return True

    def broadcast(self, event_type: str, payload: Dict[str, Any]) -> int:
        """Deliver one event to every live connection. Returns how many got it."""
        layer = self.channel_layer
        if layer is None:
            logger.warning("No channel layer available, dropping broadcast %s", event_type)
            return 0

        delivered = 0
        message = _envelope(event_type, payload)
        for channel_name in self._channels():
            try:
                async_to_sync(layer.send)(channel_name, message)
                delivered += 1
            except Exception as e:
                logger.warning("Failed to broadcast %s to %s: %s", event_type, channel_name, e)
        return delivered

    # ---------------------- Async Delivery ----------------------

    async def send_to_async(self, user_id: Any, event_type: str, payload: Dict[str, Any]) -> bool:
        """Async version of send_to (for use inside consumers)."""
        channel_name = self.connection_for(user_id)
        layer = self.channel_layer
        if channel_name is None or layer is None:
            return False

        try:
            await layer.send(channel_name, _envelope(event_type, payload))
        except Exception as e:
            logger.warning("Failed to deliver %s to user %s: %s", event_type, user_id, e)
            return False
        return True

    async def broadcast_async(self, event_type: str, payload: Dict[str, Any]) -> int:
        """Async version of broadcast."""
        layer = self.channel_layer
        if layer is None:
            return 0

        delivered = 0
        message = _envelope(event_type, payload)
        for channel_name in self._channels():
            try:
                await layer.send(channel_name, message)
                delivered += 1
            except Exception as e:
                logger.warning("Failed to broadcast %s to %s: %s", event_type, channel_name, e)
        return delivered


def _envelope(event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": BUS_MESSAGE_TYPE,
        "event": event_type,
        "data": payload,
    }


def get_event_bus() -> EventBus:
    """Return the process-wide bus owned by the realtime app."""
    from django.apps import apps
    return apps.get_app_config("realtime").event_bus
