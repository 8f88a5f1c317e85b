"""
Pool companion suggestions (stub matcher).

Pairs a new pool ride with other waiting pool rides using a fixed
compatibility score. There is no route overlap computation.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from django.db.models import QuerySet

from rides.models import Ride, PoolSuggestion

logger = logging.getLogger(__name__)

POOL_COMPATIBILITY_SCORE = Decimal("0.85")
POOL_SAVINGS_RATE = Decimal("0.30")
MAX_SUGGESTIONS = 3


def pool_savings(fare_a: Decimal, fare_b: Decimal) -> Decimal:
    """Savings for sharing: a fixed share of the cheaper fare."""
    return (min(fare_a, fare_b) * POOL_SAVINGS_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def suggest_pool_companions(ride: Ride, limit: int = MAX_SUGGESTIONS) -> List[PoolSuggestion]:
    """Store suggestions pairing ``ride`` with the newest other waiting pool rides."""
    if ride.ride_type != Ride.TYPE_POOL:
        return []

    candidates = (
        Ride.objects
        .filter(ride_type=Ride.TYPE_POOL, status=Ride.STATUS_WAITING)
        .exclude(id=ride.id)
        .exclude(rider_id=ride.rider_id)
        .order_by('-created_at', '-id')[:limit]
    )

    suggestions = []
    for candidate in candidates:
        suggestion, _ = PoolSuggestion.objects.get_or_create(
            ride=ride,
            suggested_ride=candidate,
            defaults={
                "savings": pool_savings(ride.fare, candidate.fare),
                "compatibility_score": POOL_COMPATIBILITY_SCORE,
            },
        )
        suggestions.append(suggestion)

    logger.debug("Ride %s got %d pool suggestions", ride.id, len(suggestions))
    return suggestions


def get_pool_suggestions(ride: Ride) -> QuerySet:
    return ride.pool_suggestions.select_related('suggested_ride', 'suggested_ride__rider')
