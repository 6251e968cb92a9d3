"""
Great-circle distance and coordinate helpers for flights.
"""
from __future__ import annotations

import math
from datetime import datetime

EARTH_RADIUS_KM = 6371


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_valid_coordinate(lat, lon) -> bool:
    """In range and not the (0, 0) placeholder used for failed geocodes."""
    if lat is None or lon is None:
        return False
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return False
    return not (lat == 0 and lon == 0)


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("timestamp is empty")
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def flight_duration_minutes(departure, arrival) -> int:
    dep, arr = parse_timestamp(departure), parse_timestamp(arrival)
    if (dep.tzinfo is None) != (arr.tzinfo is None):
        dep, arr = dep.replace(tzinfo=None), arr.replace(tzinfo=None)
    minutes = round((arr - dep).total_seconds() / 60)
    if minutes < 0:
        raise ValueError("arrival is before departure")
    return minutes


__all__ = ["EARTH_RADIUS_KM", "haversine_km", "is_valid_coordinate", "parse_timestamp", "flight_duration_minutes"]
