"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Creating ride requests
    - Accepting, starting and completing rides
    - Cancelling and rating rides
    - Querying active and historical rides
"""

from .ride_lifecycle import (
    RideResult,
    create_ride_request,
    accept_ride,
    start_ride,
    complete_ride,
    cancel_ride,
    rate_ride,
    update_ride,
    get_active_ride,
    get_available_rides,
    get_rides_for_user,
    get_ride,
    ride_event_payload,
)

from .exceptions import (
    RideServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    TransientStoreError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "create_ride_request",
    "accept_ride",
    "start_ride",
    "complete_ride",
    "cancel_ride",
    "rate_ride",
    "update_ride",
    "get_active_ride",
    "get_available_rides",
    "get_rides_for_user",
    "get_ride",
    "ride_event_payload",
    # Exceptions
    "RideServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientStoreError",
]
