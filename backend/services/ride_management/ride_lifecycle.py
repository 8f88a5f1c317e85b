"""
Core ride lifecycle operations.

This module owns every write to a ride's status. States move forward only:

    waiting -> accepted -> in_progress -> completed
    waiting -> cancelled
    accepted -> cancelled

``in_progress`` is optional: a ride may be completed straight from
``accepted``. Every transition is a compare-and-set on the current status
inside a transaction that also holds the ride's row lock, so two callers
racing on the same ride can never both succeed.

Ledger entries and live events are side effects. They are written in their
own savepoints and delivered after commit, and a failure there never undoes
the transition itself.
"""

import functools
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Dict, Any, Iterable

from django.contrib.auth import get_user_model
from django.db import transaction, IntegrityError, OperationalError
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from common.payloads import Location
from common.utils.geo import distance_km
from notifications.models import Notification
from rides.models import Ride
from .exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

MAX_FARE = Decimal("999999.99")
MAX_DISTANCE_KM = Decimal("99999.99")
TWO_PLACES = Decimal("0.01")

PATCHABLE_FIELDS = {
    'status', 'payment_status', 'rating', 'feedback',
    'cancellation_reason', 'actual_duration',
}

# Fields that only make sense alongside another one
COMPANION_FIELDS = {
    'feedback': "rating",
    'cancellation_reason': "status 'cancelled'",
    'actual_duration': "status 'completed'",
}


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


def translate_store_errors(func):
    """Surface database outages as TransientStoreError once the transaction has rolled back."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OperationalError as e:
            logger.warning("Store error in %s: %s", func.__name__, e)
            raise TransientStoreError("The ride store is temporarily unavailable. Please retry.") from e
    return wrapper


def ride_event_payload(ride: Ride) -> Dict[str, Any]:
    """Compact, JSON-safe description of a ride for live events."""
    return {
        "ride_id": ride.id,
        "status": ride.status,
        "ride_type": ride.ride_type,
        "rider_id": ride.rider_id,
        "driver_id": ride.driver_id,
        "fare": str(ride.fare),
        "pickup": ride.pickup.as_dict(),
        "drop": ride.drop.as_dict(),
    }


# ===================== Validation Helpers =====================

def _as_location(value, name: str) -> Location:
    if value is None:
        raise ValidationError(f"{name} location is required")
    if isinstance(value, Location):
        return value
    try:
        return Location.from_dict(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name} location: {e}")


def _as_fare(value) -> Decimal:
    if value is None:
        raise ValidationError("fare is required")
    try:
        fare = Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError("fare must be a number")
    if fare <= 0:
        raise ValidationError("fare must be greater than zero")
    if fare > MAX_FARE:
        raise ValidationError("fare is too large")
    return fare


def _as_minutes(value, name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a whole number of minutes")
    if minutes < 0:
        raise ValidationError(f"{name} cannot be negative")
    if minutes > Ride.MAX_DURATION_MINUTES:
        raise ValidationError(f"{name} is too large")
    return minutes


def _lock_ride(ride_id) -> Ride:
    """Fetch a ride holding its row lock for the rest of the transaction."""
    try:
        return Ride.objects.select_for_update().get(id=ride_id)
    except (Ride.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Ride not found")


def _transition(ride: Ride, from_statuses: Iterable[str], **changes) -> None:
    """
    Compare-and-set the ride out of ``from_statuses``.

    The update row count decides the outcome: zero rows means someone else
    moved the ride first. Constraint violations (the driver picked up another
    ride meanwhile) are reported the same way.
    """
    try:
        with transaction.atomic():
            updated = Ride.objects.filter(
                id=ride.id,
                status__in=list(from_statuses),
            ).update(**changes)
    except IntegrityError:
        raise ConflictError("This change conflicts with another active ride", error_code="active_ride_exists")

    if updated != 1:
        raise ConflictError("This ride was already updated by someone else", error_code="ride_not_available")

    for field, value in changes.items():
        setattr(ride, field, value)


# ===================== Read Paths =====================

def _participant_filter(user) -> Q:
    return Q(rider=user) | Q(driver=user)


def get_active_ride(user) -> Optional[Ride]:
    """The single active ride where ``user`` is rider or driver, if any."""
    return Ride.objects.filter(
        _participant_filter(user),
        status__in=Ride.ACTIVE_STATUSES,
    ).select_related('rider', 'driver').first()


def get_available_rides() -> QuerySet:
    """Waiting rides any online driver may accept, newest first."""
    return Ride.objects.filter(status=Ride.STATUS_WAITING).select_related('rider')


def get_rides_for_user(user) -> QuerySet:
    """Every ride ``user`` took part in, newest first."""
    return Ride.objects.filter(_participant_filter(user)).select_related('rider', 'driver')


def get_ride(ride_id, user=None) -> Ride:
    """Fetch one ride. With ``user``, only participants (and admins) may see it."""
    try:
        ride = Ride.objects.select_related('rider', 'driver').get(id=ride_id)
    except (Ride.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Ride not found")

    if user is not None and getattr(user, 'role', None) != 'admin':
        if user.id not in (ride.rider_id, ride.driver_id):
            raise NotFoundError("Ride not found")
    return ride


# ===================== Rider Operations =====================

@translate_store_errors
@transaction.atomic
def create_ride_request(
    rider,
    pickup,
    drop,
    ride_type: str = Ride.TYPE_SOLO,
    fare=None,
    estimated_duration: Optional[int] = None,
    distance=None,
    bus=None,
) -> RideResult:
    """
    Create a new ride request and announce it to online drivers.

    Args:
        rider: User model instance (student)
        pickup: Location (or {lat, lng, address} mapping)
        drop: Location (or {lat, lng, address} mapping)
        ride_type: 'solo' or 'pool'
        fare: Fare fixed for the whole ride, must be positive
        estimated_duration: Estimated minutes
        distance: Kilometres; computed from pickup/drop when omitted
        bus: Event bus for live events

    Returns:
        RideResult with the created ride

    Raises:
        ValidationError: Missing or malformed input
        ConflictError: Rider already has an active ride
    """
    pickup = _as_location(pickup, "pickup")
    drop = _as_location(drop, "drop")
    fare = _as_fare(fare)
    estimated_duration = _as_minutes(estimated_duration, "estimated_duration")

    if ride_type not in dict(Ride.TYPE_CHOICES):
        raise ValidationError(f"Unknown ride type '{ride_type}'")

    if getattr(rider, 'is_driver', False):
        raise ValidationError("Drivers cannot request rides")

    if distance is None:
        distance = distance_km(pickup.lat, pickup.lng, drop.lat, drop.lng)
    else:
        try:
            distance = Decimal(str(distance)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        except (InvalidOperation, ValueError):
            raise ValidationError("distance must be a number")
        if distance < 0:
            raise ValidationError("distance cannot be negative")
        if distance > MAX_DISTANCE_KM:
            raise ValidationError("distance is too large")

    # Check for existing active ride
    if Ride.objects.filter(rider=rider, status__in=Ride.ACTIVE_STATUSES).exists():
        raise ConflictError("You already have an active ride", error_code="active_ride_exists")

    try:
        with transaction.atomic():
            ride = Ride.objects.create(
                rider=rider,
                pickup_latitude=pickup.lat,
                pickup_longitude=pickup.lng,
                pickup_address=pickup.address,
                drop_latitude=drop.lat,
                drop_longitude=drop.lng,
                drop_address=drop.address,
                ride_type=ride_type,
                fare=fare,
                estimated_duration=estimated_duration,
                distance=distance,
                status=Ride.STATUS_WAITING,
            )
    except IntegrityError:
        # Lost a race with a concurrent request from the same rider
        raise ConflictError("You already have an active ride", error_code="active_ride_exists")

    logger.info("Ride %s requested by user %s (%s, fare=%s)", ride.id, rider.id, ride_type, fare)

    from services.matching import announce_ride_request, suggest_pool_companions

    drivers_notified = announce_ride_request(ride, bus=bus)

    suggestions = []
    if ride.ride_type == Ride.TYPE_POOL:
        suggestions = suggest_pool_companions(ride)

    if drivers_notified:
        message = "Searching for drivers..."
    else:
        message = "Ride requested. No drivers are online right now."

    return RideResult(
        success=True,
        ride=ride,
        message=message,
        extra={
            "drivers_notified": drivers_notified,
            "pool_suggestions": len(suggestions),
        }
    )


@translate_store_errors
@transaction.atomic
def cancel_ride(ride_id, actor, reason: str = "", bus=None) -> RideResult:
    """
    Cancel a ride.

    The rider may cancel while the ride is waiting or accepted, the assigned
    driver only while it is accepted. The driver reference is cleared and the
    other party (if any) is notified.
    """
    ride = _lock_ride(ride_id)

    if actor.id == ride.rider_id:
        cancelled_by = 'rider'
        allowed = (Ride.STATUS_WAITING, Ride.STATUS_ACCEPTED)
    elif ride.driver_id is not None and actor.id == ride.driver_id:
        cancelled_by = 'driver'
        allowed = (Ride.STATUS_ACCEPTED,)
    else:
        raise NotFoundError("Ride not found")

    if ride.status not in allowed:
        raise ConflictError(f"Cannot cancel - ride is already {ride.status}", error_code="ride_not_available")

    former_driver = ride.driver if ride.driver_id else None

    _transition(
        ride,
        [ride.status],
        status=Ride.STATUS_CANCELLED,
        driver=None,
        cancelled_at=timezone.now(),
        cancelled_by=cancelled_by,
        cancellation_reason=reason or None,
    )
    logger.info("Ride %s cancelled by %s (user %s)", ride.id, cancelled_by, actor.id)

    from realtime.notifications import notify_user

    data = {"ride_id": ride.id, "cancelled_by": cancelled_by, "reason": reason or ""}
    if cancelled_by == 'rider' and former_driver is not None:
        notify_user(
            former_driver,
            Notification.RIDE_CANCELLED,
            "Ride Cancelled",
            "The rider cancelled this ride.",
            data=data,
            bus=bus,
        )
    elif cancelled_by == 'driver':
        notify_user(
            ride.rider,
            Notification.RIDE_CANCELLED,
            "Ride Cancelled",
            "Your driver cancelled the ride. Please request again.",
            data=data,
            bus=bus,
        )

    return RideResult(
        success=True,
        ride=ride,
        message="Ride cancelled successfully",
        extra={"was_assigned": former_driver is not None}
    )


@translate_store_errors
@transaction.atomic
def rate_ride(ride_id, rider, rating, feedback: str = "", bus=None) -> RideResult:
    """Rate a completed ride once. Updates the driver's running rating."""
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("rating must be a whole number from 1 to 5")
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be a whole number from 1 to 5")

    ride = _lock_ride(ride_id)
    if ride.rider_id != rider.id:
        raise NotFoundError("Ride not found")
    if ride.status != Ride.STATUS_COMPLETED:
        raise ConflictError("Only completed rides can be rated")
    if ride.rating is not None:
        raise ConflictError("This ride has already been rated", error_code="already_rated")

    updated = Ride.objects.filter(
        id=ride.id,
        status=Ride.STATUS_COMPLETED,
        rating__isnull=True,
    ).update(rating=rating, feedback=feedback or None)
    if updated != 1:
        raise ConflictError("This ride has already been rated", error_code="already_rated")
    ride.rating = rating
    ride.feedback = feedback or None

    User = get_user_model()
    driver = User.objects.select_for_update().get(id=ride.driver_id)
    total = Decimal(driver.rating) * driver.rating_count + rating
    driver.rating_count += 1
    driver.rating = (total / driver.rating_count).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    driver.save(update_fields=['rating', 'rating_count'])

    from services import analytics
    try:
        analytics.record_rating(rating)
    except Exception:
        logger.exception("Failed to record rating for ride %s in analytics", ride.id)

    logger.info("Ride %s rated %s by user %s", ride.id, rating, rider.id)
    return RideResult(success=True, ride=ride, message="Thanks for your feedback!")


# ===================== Driver Operations =====================

@translate_store_errors
@transaction.atomic
def accept_ride(driver, ride_id, bus=None) -> RideResult:
    """
    Accept a waiting ride.

    Exactly one of several drivers racing on the same ride wins: the row lock
    serializes them and the status compare-and-set rejects everyone after
    the first.

    Args:
        driver: User model instance (driver)
        ride_id: ID of the ride to accept
        bus: Event bus for live events

    Returns:
        RideResult with the accepted ride

    Raises:
        ValidationError: Acting user is not a driver, or is the rider
        NotFoundError: No such ride
        ConflictError: Ride no longer waiting, or the driver already has an active ride
    """
    if not getattr(driver, 'is_driver', False):
        raise ValidationError("Only drivers can accept rides")

    ride = _lock_ride(ride_id)

    if ride.rider_id == driver.id:
        raise ValidationError("You cannot accept your own ride")

    if ride.status != Ride.STATUS_WAITING:
        raise ConflictError("This ride was already handled or cancelled", error_code="ride_not_available")

    if Ride.objects.filter(
        driver=driver,
        status__in=[Ride.STATUS_ACCEPTED, Ride.STATUS_IN_PROGRESS],
    ).exists():
        raise ConflictError("You already have an active ride", error_code="active_ride_exists")

    _transition(
        ride,
        [Ride.STATUS_WAITING],
        driver=driver,
        status=Ride.STATUS_ACCEPTED,
        accepted_at=timezone.now(),
    )
    logger.info("Ride %s accepted by driver %s", ride.id, driver.id)

    # Notify rider
    from realtime.bus import EVENT_RIDE_ACCEPTED
    from realtime.notifications import notify_user_event
    notify_user_event(
        ride.rider,
        EVENT_RIDE_ACCEPTED,
        Notification.RIDE_ACCEPTED,
        "Driver Found!",
        f"{driver.display_name} will pick you up shortly",
        data={"ride_id": ride.id, "driver_id": driver.id},
        payload=ride_event_payload(ride),
        bus=bus,
    )

    return RideResult(
        success=True,
        ride=ride,
        message="Ride accepted! Navigate to the pickup location."
    )


def _assigned_ride(ride_id, driver) -> Ride:
    ride = _lock_ride(ride_id)
    if driver is not None and ride.driver_id != driver.id:
        raise NotFoundError("Ride not found or not assigned to you")
    return ride


@translate_store_errors
@transaction.atomic
def start_ride(ride_id, driver=None, bus=None) -> RideResult:
    """Mark an accepted ride as picked up (accepted -> in_progress)."""
    ride = _assigned_ride(ride_id, driver)

    if ride.status != Ride.STATUS_ACCEPTED:
        raise ConflictError(f"Cannot start - ride is {ride.status}", error_code="ride_not_available")

    _transition(
        ride,
        [Ride.STATUS_ACCEPTED],
        status=Ride.STATUS_IN_PROGRESS,
        started_at=timezone.now(),
    )
    logger.info("Ride %s started", ride.id)

    from realtime.notifications import notify_user
    notify_user(
        ride.rider,
        Notification.RIDE_STARTED,
        "Ride Started",
        "You're on your way!",
        data={"ride_id": ride.id},
        bus=bus,
    )

    return RideResult(success=True, ride=ride, message="Ride started")


@translate_store_errors
@transaction.atomic
def complete_ride(ride_id, actual_duration=None, driver=None, bus=None) -> RideResult:
    """
    Complete a ride from ``accepted`` or ``in_progress``.

    A second call on the same ride is a ConflictError, so analytics and
    earnings are never counted twice.

    Args:
        ride_id: ID of the ride to complete
        actual_duration: Minutes; measured from pickup (or acceptance) when omitted
        driver: When given, must be the assigned driver
        bus: Event bus for live events

    Returns:
        RideResult with the completed ride
    """
    actual_duration = _as_minutes(actual_duration, "actual_duration")
    ride = _assigned_ride(ride_id, driver)

    if ride.status not in (Ride.STATUS_ACCEPTED, Ride.STATUS_IN_PROGRESS):
        raise ConflictError(f"Cannot complete - ride is {ride.status}", error_code="ride_not_available")

    now = timezone.now()
    if actual_duration is None:
        began = ride.started_at or ride.accepted_at or now
        actual_duration = max(int((now - began).total_seconds() // 60), 0)

    _transition(
        ride,
        [Ride.STATUS_ACCEPTED, Ride.STATUS_IN_PROGRESS],
        status=Ride.STATUS_COMPLETED,
        completed_at=now,
        actual_duration=actual_duration,
    )
    logger.info("Ride %s completed (%s min, fare=%s)", ride.id, actual_duration, ride.fare)

    # Update ride counts and earnings
    User = get_user_model()
    User.objects.filter(id__in=[ride.rider_id, ride.driver_id]).update(
        completed_rides=F('completed_rides') + 1
    )
    User.objects.filter(id=ride.driver_id).update(earnings=F('earnings') + ride.fare)

    from services import analytics
    try:
        analytics.record_completion(ride)
    except Exception:
        logger.exception("Failed to record completion of ride %s in analytics", ride.id)

    # Notify both parties
    from realtime.bus import EVENT_RIDE_COMPLETED
    from realtime.notifications import notify_user_event
    payload = ride_event_payload(ride)
    data = {"ride_id": ride.id, "fare": str(ride.fare)}
    notify_user_event(
        ride.rider,
        EVENT_RIDE_COMPLETED,
        Notification.RIDE_COMPLETED,
        "Ride Completed",
        "You have arrived. Thank you for riding with us!",
        data=data,
        payload=payload,
        bus=bus,
    )
    notify_user_event(
        ride.driver,
        EVENT_RIDE_COMPLETED,
        Notification.RIDE_COMPLETED,
        "Ride Completed",
        f"Fare of {ride.fare} added to your earnings",
        data=data,
        payload=payload,
        bus=bus,
    )

    return RideResult(success=True, ride=ride, message="Ride completed successfully")


# ===================== Generic Patch =====================

@translate_store_errors
@transaction.atomic
def update_ride(ride_id, fields: Dict[str, Any], actor, bus=None) -> RideResult:
    """
    Apply a partial update to a ride.

    A ``status`` field is routed to the matching transition (cancelled,
    in_progress, completed). ``rating``/``feedback`` rate the ride and
    ``payment_status`` settles a completed ride. Anything else is rejected.
    """
    if not fields:
        raise ValidationError("Nothing to update")

    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    status = fields.get('status')
    if status is not None:
        extra = set(fields) - {'status', 'cancellation_reason', 'actual_duration'}
        if extra:
            raise ValidationError("status cannot be combined with other fields")

        if status == Ride.STATUS_CANCELLED:
            return cancel_ride(ride_id, actor, fields.get('cancellation_reason') or "", bus=bus)
        if status == Ride.STATUS_IN_PROGRESS:
            return start_ride(ride_id, driver=actor, bus=bus)
        if status == Ride.STATUS_COMPLETED:
            return complete_ride(ride_id, fields.get('actual_duration'), driver=actor, bus=bus)
        raise ValidationError(f"Cannot move a ride to '{status}'")

    if 'rating' in fields:
        return rate_ride(ride_id, actor, fields['rating'], fields.get('feedback') or "", bus=bus)

    if 'payment_status' in fields:
        return _settle_payment(ride_id, fields['payment_status'], actor)

    orphans = sorted(set(fields) & set(COMPANION_FIELDS))
    raise ValidationError("; ".join(
        f"{name} can only be sent together with {COMPANION_FIELDS[name]}" for name in orphans
    ))


def _settle_payment(ride_id, payment_status: str, actor) -> RideResult:
    if payment_status not in dict(Ride.PAYMENT_CHOICES):
        raise ValidationError(f"Unknown payment status '{payment_status}'")

    ride = _lock_ride(ride_id)
    if actor.id not in (ride.rider_id, ride.driver_id):
        raise NotFoundError("Ride not found")
    if ride.status != Ride.STATUS_COMPLETED:
        raise ConflictError("Payment can only be settled on completed rides")

    ride.payment_status = payment_status
    ride.save(update_fields=['payment_status'])
    logger.info("Ride %s payment marked %s", ride.id, payment_status)
    return RideResult(success=True, ride=ride, message="Payment status updated")
