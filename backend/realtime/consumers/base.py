"""Shared plumbing for socket consumers: auth gate, envelope parsing, replies."""

import logging
from typing import Dict, Any, Optional

from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Speaks the ``{"type": ..., "data": ...}`` envelope in both directions.

    Subclasses implement handle_message(msg_type, message) and may hook
    on_connect() / on_disconnect(close_code).
    """

    async def connect(self):
        user = self.scope.get("user")
        if user is None or user.is_anonymous:
            logger.debug("Rejecting unauthenticated socket")
            await self.close()
            return

        self.user = user
        self.user_id = user.id
        self.role = getattr(user, "role", None)

        await self.accept()
        await self.on_connect()

    async def on_connect(self):
        await self.send_event("connection_established", {"user_id": self.user_id, "role": self.role})

    async def disconnect(self, close_code):
        try:
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Disconnect hook failed for user %s", getattr(self, "user_id", None))

    async def on_disconnect(self, close_code):
        pass

    async def receive_json(self, content, **kwargs):
        msg_type = _message_type(content)
        if msg_type is None:
            await self.send_error("Expected a JSON object with a string 'type'")
            return

        try:
            await self.handle_message(msg_type, content)
        except Exception:
            logger.exception("Failed handling %s from user %s", msg_type, self.user_id)
            await self.send_error(f"Could not process {msg_type}")

    async def handle_message(self, msg_type: str, message: Dict[str, Any]):
        raise NotImplementedError

    # ---------------------- Replies ----------------------

    async def send_event(self, event_type: str, data: Any = None):
        await self.send_json({"type": event_type, "data": data})

    async def send_error(self, message: str):
        await self.send_event("error", {"message": message})


def _message_type(content) -> Optional[str]:
    if not isinstance(content, dict):
        return None
    msg_type = content.get("type")
    return msg_type if isinstance(msg_type, str) and msg_type else None
