"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - ride_management: Core ride lifecycle operations
    - matching: Ride request dispatch and pool suggestions
    - ledger: Per-user notification history
    - analytics: Daily rollups
"""

# Expose commonly used functions at package level
from .matching import (
    announce_ride_request,
    request_acceptance,
    suggest_pool_companions,
    get_pool_suggestions,
)
from .ride_management import (
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
    RideServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    TransientStoreError,
)

__all__ = [
    # Matching
    "announce_ride_request",
    "request_acceptance",
    "suggest_pool_companions",
    "get_pool_suggestions",
    # Ride management
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
    # Exceptions
    "RideServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientStoreError",
]
