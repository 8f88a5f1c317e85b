"""
Driver availability and location.

Both operations are HTTP fallbacks for what clients can also push over the
event socket: toggling online status and streaming GPS updates.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from common.payloads import Location
from notifications.models import Notification
from realtime.bus import EVENT_DRIVER_LOCATION
from realtime.notifications import broadcast_event, notify_user

logger = logging.getLogger(__name__)


@transaction.atomic
def set_user_availability(user, online: bool, bus=None):
    """
    Mark ``user`` online or offline.

    A driver going online (from offline) gets a ``driver_online`` ledger
    entry and a matching live notification.
    """
    was_online = user.is_online
    user.is_online = bool(online)
    user.save(update_fields=["is_online"])

    logger.info("User %s is now %s", user.id, "online" if user.is_online else "offline")

    if user.is_driver and user.is_online and not was_online:
        notify_user(
            user,
            Notification.DRIVER_ONLINE,
            "You're Online",
            "You will now receive ride requests.",
            data={"driver_id": user.id},
            bus=bus,
        )

    return user


@transaction.atomic
def update_driver_location(user, location: Location, bus=None):
    """
    Store the driver's latest position and broadcast a ``driver_location``
    event to every live connection.
    """
    user.current_latitude = location.lat
    user.current_longitude = location.lng
    user.current_address = location.address
    user.last_location_update = timezone.now()
    user.save(update_fields=[
        "current_latitude",
        "current_longitude",
        "current_address",
        "last_location_update",
    ])

    broadcast_event(
        EVENT_DRIVER_LOCATION,
        {"driver_id": user.id, "location": location.as_dict()},
        bus=bus,
    )
    return user


def get_online_drivers():
    User = get_user_model()
    return (
        User.objects
        .filter(role=User.ROLE_DRIVER, is_online=True, is_active=True)
        .select_related("driver_profile")
        .order_by("username")
    )
