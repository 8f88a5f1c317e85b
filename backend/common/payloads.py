"""
Typed payloads for locations and vehicles.

Locations and vehicle descriptors travel through the API, the ride model and
the WebSocket channel. They are validated once at the boundary and passed
around as these frozen dataclasses afterwards.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    address: str = ""

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValueError("lat must be between -90 and 90")
        if not -180 <= self.lng <= 180:
            raise ValueError("lng must be between -180 and 180")

    @classmethod
    def from_dict(cls, data: Any) -> "Location":
        """Build a Location from an untrusted mapping (e.g. a socket message)."""
        if not isinstance(data, dict):
            raise ValueError("location must be an object with lat and lng")
        try:
            lat = float(data["lat"])
            lng = float(data["lng"])
        except (KeyError, TypeError, ValueError):
            raise ValueError("location requires numeric lat and lng")
        return cls(lat=lat, lng=lng, address=str(data.get("address") or ""))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VehicleInfo:
    make: str
    model: str
    plate: str
    color: str = ""

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


def location_or_none(lat, lng, address: Optional[str] = "") -> Optional[Location]:
    """Rebuild a Location from stored columns; None when no coordinates are stored."""
    if lat is None or lng is None:
        return None
    return Location(lat=float(lat), lng=float(lng), address=address or "")
