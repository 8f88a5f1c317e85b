"""Great-circle distance, used to fill in ride distance when clients omit it."""

from decimal import Decimal, ROUND_HALF_UP
from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, lam1, phi2, lam2 = (radians(float(v)) for v in (lat1, lng1, lat2, lng2))
    h = sin((phi2 - phi1) / 2) ** 2 + cos(phi1) * cos(phi2) * sin((lam2 - lam1) / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(min(1.0, sqrt(h)))


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> Decimal:
    """haversine_km rounded to 2 places, ready for Ride.distance."""
    km = haversine_km(lat1, lng1, lat2, lng2)
    return Decimal(str(km)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
