"""
Notification helpers for ride transitions.

Each helper pairs the two delivery paths a client relies on:
- a durable ledger entry (written inside the caller's transaction, in its
  own savepoint so a failed write never undoes the ride transition)
- a live event on the fan-out bus, sent only after the transaction commits

The ledger is the source of truth; the live event is a low-latency hint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import transaction

from notifications.models import Notification
from notifications.serializers import NotificationSerializer
from services import ledger
from .bus import EVENT_NOTIFICATION, EventBus, get_event_bus

logger = logging.getLogger(__name__)


# ---------------------- Ledger ----------------------

def record_best_effort(
    user,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Optional[Notification]:
    """Write a ledger entry; log and return None instead of raising on failure."""
    try:
        with transaction.atomic():
            return ledger.record(user, notification_type, title, message, data)
    except Exception:
        logger.exception(
            "Failed to write %s ledger entry for user %s",
            notification_type, getattr(user, "id", None)
        )
        return None


# ---------------------- Live Events ----------------------

def send_after_commit(user_id, event_type: str, payload: Dict[str, Any], bus: EventBus = None):
    """Schedule a targeted event for when the current transaction commits."""
    bus = bus or get_event_bus()

    def _send():
        delivered = bus.send_to(user_id, event_type, payload)
        logger.debug("WS -> user_%s: %s (delivered=%s)", user_id, event_type, delivered)

    transaction.on_commit(_send, robust=True)


def broadcast_event(event_type: str, payload: Dict[str, Any], bus: EventBus = None):
    """Schedule a broadcast to every live connection for when the transaction commits."""
    bus = bus or get_event_bus()

    def _send():
        delivered = bus.broadcast(event_type, payload)
        logger.debug("WS -> all: %s (delivered=%d)", event_type, delivered)

    transaction.on_commit(_send, robust=True)


# ---------------------- Combined ----------------------

def notify_user_event(
    user,
    event_type: str,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    payload: Optional[Dict[str, Any]] = None,
    bus: EventBus = None,
) -> Optional[Notification]:
    """
    Write a ledger entry for ``user`` and push a live event to them.

    Args:
        user: Recipient (User instance)
        event_type: Bus event type (ride_request, ride_accepted, ride_completed, notification)
        notification_type: Ledger tag (ride_accepted, ride_cancelled, driver_online, ...)
        title: Short ledger title
        message: Human-readable ledger message
        data: Ledger payload (ids the client can use to re-fetch)
        payload: Live event body; defaults to the serialized ledger entry
        bus: Event bus to deliver through (defaults to the app's bus)

    Returns:
        The ledger entry, or None if writing it failed
    """
    notification = record_best_effort(user, notification_type, title, message, data)

    if payload is None:
        if notification is None:
            payload = {"type": notification_type, "title": title, "message": message, "data": data or {}}
        else:
            payload = dict(NotificationSerializer(notification).data)

    send_after_commit(user.id, event_type, payload, bus=bus)
    return notification


def notify_user(user, notification_type: str, title: str, message: str,
                data: Optional[Dict[str, Any]] = None, bus: EventBus = None) -> Optional[Notification]:
    """Ledger entry + generic 'notification' event carrying that entry."""
    return notify_user_event(
        user,
        EVENT_NOTIFICATION,
        notification_type,
        title,
        message,
        data=data,
        bus=bus,
    )
