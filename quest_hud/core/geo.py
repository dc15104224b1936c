"""Geographic helpers: positions, distances and bearings."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Optional

EARTH_RADIUS_M = 6371000


@dataclass
class Location:
    lat: float
    lng: float
    accuracy: Optional[float] = None
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lng2 - lng1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def format_distance(meters: float) -> str:
    """Short display form: "850m" below one kilometre, "2.4km" above."""
    if meters < 1000:
        return "{}m".format(int(round(meters)))
    return "{:.1f}km".format(meters / 1000)


def format_spoken_distance(meters: float) -> str:
    """Spoken form for text-to-speech: "850 meters" / "2.4 kilometers"."""
    if meters < 1000:
        return "{} meters".format(int(round(meters)))
    return "{:.1f} kilometers".format(meters / 1000)
