from .geo import haversine_km, distance_km

__all__ = [
    "haversine_km",
    "distance_km",
]
