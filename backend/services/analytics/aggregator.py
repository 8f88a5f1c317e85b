"""
Daily analytics rollups.

One mutable row per calendar date. Rows are created lazily with zero
defaults and only ever updated incrementally by the ride services.
"""

import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

from django.db import transaction
from django.utils import timezone

from analytics.models import DailyAnalytics

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# Longest wait folded into the average (one year), keeps the column in range
MAX_WAIT_SAMPLE_MINUTES = 525600.0

# Hours shown on the demand chart, with the fixed predicted curve
DEMAND_HOURS = ["06", "09", "12", "15", "18", "21", "00"]
DEMAND_LABELS = ['6 AM', '9 AM', '12 PM', '3 PM', '6 PM', '9 PM', '12 AM']
PREDICTED_DEMAND = [12, 45, 25, 35, 67, 89, 23]


def _q(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _running_average(current: Decimal, count: int, new_value) -> Decimal:
    """Average of ``count`` samples averaging ``current`` plus one more sample."""
    total = Decimal(current) * count + Decimal(str(new_value))
    return _q(total / (count + 1))


def _locked_row(day=None) -> DailyAnalytics:
    """Today's (or ``day``'s) row, created with zero defaults and row-locked."""
    day = day or timezone.localdate()
    row, created = DailyAnalytics.objects.select_for_update().get_or_create(date=day)
    if created:
        logger.info("Created analytics rollup for %s", day)
    return row


@transaction.atomic
def record_completion(ride) -> DailyAnalytics:
    """
    Fold one completed ride into today's rollup.

    Updates ride count, revenue, average wait (request -> accept), the
    hourly demand histogram and the pool ride percentage.
    """
    row = _locked_row()

    wait_minutes = 0.0
    if ride.accepted_at and ride.created_at:
        wait_minutes = (ride.accepted_at - ride.created_at).total_seconds() / 60.0
        wait_minutes = min(max(wait_minutes, 0.0), MAX_WAIT_SAMPLE_MINUTES)

    row.avg_wait_time = _running_average(row.avg_wait_time, row.total_rides, round(wait_minutes, 2))
    row.total_rides += 1
    row.total_revenue = _q(Decimal(row.total_revenue) + Decimal(ride.fare))

    hour = timezone.localtime(ride.created_at or timezone.now()).strftime("%H")
    peak_hours = dict(row.peak_hours or {})
    peak_hours[hour] = peak_hours.get(hour, 0) + 1
    row.peak_hours = peak_hours

    if ride.ride_type == 'pool':
        row.pool_rides += 1
    row.pool_ride_percentage = _q(Decimal(row.pool_rides * 100) / row.total_rides)

    row.save()
    logger.info(
        "Analytics %s: rides=%d revenue=%s",
        row.date, row.total_rides, row.total_revenue
    )
    return row


@transaction.atomic
def record_rating(rating: int) -> DailyAnalytics:
    """Fold one ride rating into today's running average."""
    row = _locked_row()
    row.avg_rating = _running_average(row.avg_rating, row.rated_rides, rating)
    row.rated_rides += 1
    row.save(update_fields=['avg_rating', 'rated_rides'])
    return row


@transaction.atomic
def record_active_drivers(count: int) -> DailyAnalytics:
    """Store the latest online-driver count for today."""
    row = _locked_row()
    row.active_drivers = count
    row.save(update_fields=['active_drivers'])
    return row


def today_snapshot() -> DailyAnalytics:
    """Today's row, or an unsaved zero-valued row if nothing happened yet."""
    today = timezone.localdate()
    row = DailyAnalytics.objects.filter(date=today).first()
    return row or DailyAnalytics(date=today)


def demand_prediction() -> Dict[str, Any]:
    """Predicted vs actual ride demand for the dashboard chart."""
    peak_hours = today_snapshot().peak_hours or {}
    return {
        "labels": list(DEMAND_LABELS),
        "predicted": list(PREDICTED_DEMAND),
        "actual": [peak_hours.get(hour, 0) for hour in DEMAND_HOURS],
    }


def revenue_trend(days: int = 7) -> Dict[str, Any]:
    """Revenue per day for the last ``days`` days (today included), oldest first."""
    today = timezone.localdate()
    start = today - timedelta(days=days - 1)
    revenue_by_date = dict(
        DailyAnalytics.objects.filter(date__gte=start, date__lte=today)
        .values_list('date', 'total_revenue')
    )

    labels, data = [], []
    for offset in range(days):
        day = start + timedelta(days=offset)
        labels.append(day.strftime('%a'))
        data.append(float(revenue_by_date.get(day, 0)))
    return {"labels": labels, "data": data}
