"""
Driver matching service.

This module handles:
    - Announcing new ride requests to online drivers
    - Routing accept requests to the lifecycle engine
    - Suggesting pool companions (fixed-score stub)
"""

from .dispatcher import announce_ride_request, request_acceptance, eligible_drivers
from .pool import suggest_pool_companions, get_pool_suggestions

__all__ = [
    "announce_ride_request",
    "request_acceptance",
    "eligible_drivers",
    "suggest_pool_companions",
    "get_pool_suggestions",
]
