"""
Analytics aggregator - daily rollups and dashboard series.
"""

from .aggregator import (
    record_completion,
    record_rating,
    record_active_drivers,
    today_snapshot,
    demand_prediction,
    revenue_trend,
)

__all__ = [
    "record_completion",
    "record_rating",
    "record_active_drivers",
    "today_snapshot",
    "demand_prediction",
    "revenue_trend",
]
