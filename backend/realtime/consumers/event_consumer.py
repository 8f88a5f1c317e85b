"""
Event consumer - the single live channel every client keeps open.

Inbound message contract: {"type": ..., "data": ..., "userId": ...}

- The first message carrying ``userId`` registers this connection on the
  event bus (lazy registration). The id must be the authenticated user's.
- ``driver_location`` messages from drivers are validated and re-broadcast
  to every live connection.
- Every other inbound type is ignored; those actions go through HTTP.

Outbound: {"type": <event type>, "data": <payload>} for every bus event.
"""

import logging
from typing import Any, Dict

from common.payloads import Location
from ..bus import EVENT_DRIVER_LOCATION, get_event_bus
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class EventConsumer(BaseConsumer):

    def __init__(self, *args, bus=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._bus = bus
        self.registered_user_id = None

    @property
    def bus(self):
        if self._bus is None:
            self._bus = get_event_bus()
        return self._bus

    async def on_disconnect(self, close_code):
        user_key = self.bus.unregister_connection(self.channel_name)
        if user_key is not None:
            logger.info("User %s disconnected from events (code=%s)", user_key, close_code)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        claimed_user_id = data.get("userId")
        if claimed_user_id is not None and self.registered_user_id is None:
            registered = await self._register(claimed_user_id)
            if not registered:
                return

        if msg_type == EVENT_DRIVER_LOCATION:
            await self._relay_driver_location(data.get("data"))
            return

        logger.debug("Ignoring inbound %s from user %s", msg_type, self.user_id)

    # ---------------------- Inbound Handlers ----------------------

    async def _register(self, claimed_user_id) -> bool:
        if str(claimed_user_id) != str(self.user_id):
            logger.warning(
                "User %s tried to register as %s", self.user_id, claimed_user_id
            )
            await self.send_error("userId does not match the authenticated user")
            return False

        self.bus.register(self.user_id, self.channel_name)
        self.registered_user_id = self.user_id
        logger.info("User %s registered for events", self.user_id)

        await self.send_event("registered", {"user_id": self.user_id})
        return True

    async def _relay_driver_location(self, payload):
        if self.role != "driver":
            await self.send_error("Only drivers can share their location")
            return

        raw = payload.get("location", payload) if isinstance(payload, dict) else payload
        try:
            location = Location.from_dict(raw)
        except ValueError as e:
            await self.send_error(f"Invalid location: {e}")
            return

        delivered = await self.bus.broadcast_async(
            EVENT_DRIVER_LOCATION,
            {"driver_id": self.user_id, "location": location.as_dict()},
        )
        logger.debug("Driver %s location relayed to %d connections", self.user_id, delivered)

    # ---------------------- Bus Events ----------------------

    async def bus_event(self, event):
        """Forward a bus message to the socket."""
        await self.send_event(event["event"], event.get("data"))
