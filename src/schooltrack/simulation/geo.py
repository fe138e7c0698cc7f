"""Great-circle distance and travel time."""

from __future__ import annotations

import math

from schooltrack._constants import EARTH_RADIUS_M
from schooltrack.models._base import LatLng


def haversine_distance(a: LatLng, b: LatLng) -> float:
    """Distance in meters between two ``(lat, lon)`` points.

    Uses a spherical Earth of radius 6,371,000 m.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def kmh_to_ms(speed_kmh: float) -> float:
    return speed_kmh * 1000 / 3600


def travel_time_ms(distance_m: float, speed_m_s: float) -> float:
    """Milliseconds needed to cover *distance_m* at *speed_m_s*."""
    if speed_m_s <= 0:
        raise ValueError("speed must be positive")
    return distance_m / speed_m_s * 1000
