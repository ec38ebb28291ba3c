"""Coordinate validation and distance helpers."""

import math

from safecampus.core.errors import InvalidCoordinatesError


def validate_coordinates(latitude: float, longitude: float) -> tuple[float, float]:
    """Return (lat, lng) as floats or raise InvalidCoordinatesError."""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinatesError(f"Coordinates must be numbers: {latitude!r}, {longitude!r}") from e
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinatesError(f"Coordinates must be finite: {lat}, {lng}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinatesError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinatesError(f"Longitude out of range: {lng}")
    return lat, lng


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two lat/lng points in kilometers."""
    R = 6371.0  # Earth radius in km
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
