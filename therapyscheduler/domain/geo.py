"""
Distance and travel-time estimation between two coordinates.
"""

import math
from datetime import datetime
from typing import Optional

from ..config import TravelConfig
from .models import Client, Coordinate, Therapist

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance in km between two coordinates."""
    dlat = math.radians(destination.latitude - origin.latitude)
    dlng = math.radians(destination.longitude - origin.longitude)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(origin.latitude))
        * math.cos(math.radians(destination.latitude))
        * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.asin(min(1.0, math.sqrt(a)))


def is_rush_hour(local_time: datetime, travel: TravelConfig) -> bool:
    hour = local_time.hour
    return any(start <= hour <= end for start, end in travel.rush_hours)


def traffic_speed_kmh(local_time: datetime, travel: TravelConfig) -> float:
    """Average driving speed for the local time of day."""
    if is_rush_hour(local_time, travel):
        return travel.rush_hour_speed_kmh
    return travel.off_peak_speed_kmh


def estimate_travel_minutes(
    origin: Coordinate,
    destination: Coordinate,
    local_time: datetime,
    travel: TravelConfig,
) -> int:
    """Whole minutes needed to drive from origin to destination, departing at local_time."""
    km = haversine_km(origin, destination)
    return math.ceil(km / traffic_speed_kmh(local_time, travel) * 60)


def _radius(value: Optional[float], default: float) -> float:
    return value if value is not None and value > 0 else default


def within_service_radius(therapist: Therapist, client: Client, default_radius_km: float) -> bool:
    """
    Whether the client lies inside both the therapist's and the client's travel radius.

    Missing locations never exclude a pair.
    """
    if therapist.location is None or client.location is None:
        return True
    max_km = min(
        _radius(therapist.service_radius_km, default_radius_km),
        _radius(client.preferred_radius_km, default_radius_km),
    )
    return haversine_km(therapist.location, client.location) <= max_km
