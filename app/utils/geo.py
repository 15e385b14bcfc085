"""
Great-circle distance and simple progress/ETA estimates.
ref: https://en.wikipedia.org/wiki/Haversine_formula
"""
import math
from typing import Union

EARTH_RADIUS_METERS = 6_371_000
METERS_PER_MILE = 1609.34
# Distance at which a trip counts as 0% progressed
PROGRESS_CEILING_METERS = 5000
AVERAGE_SPEED_KMH = 30
ARRIVING = "arriving"


def _coords(point) -> tuple:
    if isinstance(point, dict):
        return point["lat"], point["lng"]
    return point.lat, point.lng


def distance_meters(a, b) -> float:
    """
    Haversine distance between two points.
    
    Args:
        a: Point with ``lat``/``lng`` (Location or dict)
        b: Point with ``lat``/``lng`` (Location or dict)
        
    Returns:
        Distance in meters
    """
    lat1, lng1 = _coords(a)
    lat2, lng2 = _coords(b)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * c


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def progress_percent(current, destination) -> float:
    """Remaining distance mapped linearly onto [0, 100]; 100 means arrived."""
    distance = distance_meters(current, destination)
    if distance <= 0:
        return 100.0
    if distance >= PROGRESS_CEILING_METERS:
        return 0.0
    return max(0.0, min(100.0, 100 - distance / PROGRESS_CEILING_METERS * 100))


def eta_minutes(distance: float) -> Union[int, str]:
    """
    Minutes to cover ``distance`` meters at the average speed.
    
    Returns:
        Whole minutes, or ``ARRIVING`` when under a minute
    """
    minutes = round((distance / 1000) / AVERAGE_SPEED_KMH * 60)
    if minutes < 1:
        return ARRIVING
    return minutes
