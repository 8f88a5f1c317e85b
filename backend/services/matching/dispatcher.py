"""
Ride request dispatch.

Broadcast policy: every online driver hears about every new waiting ride.
There is no scoring or radius filter. The dispatcher never touches ride
status itself; acceptance is arbitrated by the lifecycle engine.
"""

import logging

from django.contrib.auth import get_user_model
from django.db.models import QuerySet

from notifications.models import Notification
from rides.models import Ride
from services.ride_management.ride_lifecycle import (
    RideResult,
    accept_ride,
    ride_event_payload,
)

logger = logging.getLogger(__name__)


def eligible_drivers(ride: Ride = None) -> QuerySet:
    """Online drivers, optionally excluding the ride's own rider."""
    User = get_user_model()
    drivers = User.objects.filter(role=User.ROLE_DRIVER, is_online=True, is_active=True)
    if ride is not None:
        drivers = drivers.exclude(id=ride.rider_id)
    return drivers.order_by('id')


def announce_ride_request(ride: Ride, bus=None) -> int:
    """
    Publish a new waiting ride.

    Writes a ``ride_request`` ledger entry for the rider and for every online
    driver, and sends each driver a ``ride_request`` event once the ride's
    transaction commits.

    Args:
        ride: The freshly created ride
        bus: Event bus for live events

    Returns:
        Number of drivers notified
    """
    from realtime.bus import EVENT_RIDE_REQUEST
    from realtime.notifications import notify_user, notify_user_event

    data = {"ride_id": ride.id}
    notify_user(
        ride.rider,
        Notification.RIDE_REQUEST,
        "Ride Requested",
        "Your ride request has been submitted. Searching for drivers...",
        data=data,
        bus=bus,
    )

    payload = ride_event_payload(ride)
    pickup = ride.pickup_address or "the pickup point"

    notified = 0
    for driver in eligible_drivers(ride):
        notify_user_event(
            driver,
            EVENT_RIDE_REQUEST,
            Notification.RIDE_REQUEST,
            "New Ride Request",
            f"Pickup at {pickup}, fare {ride.fare}",
            data=data,
            payload=payload,
            bus=bus,
        )
        notified += 1

    logger.info("Ride %s announced to %d online drivers", ride.id, notified)
    return notified


def request_acceptance(ride_id, driver, bus=None) -> RideResult:
    """Ask the lifecycle engine to arbitrate ``driver``'s accept on ``ride_id``."""
    logger.debug("Driver %s requesting ride %s", driver.id, ride_id)
    return accept_ride(driver, ride_id, bus=bus)
