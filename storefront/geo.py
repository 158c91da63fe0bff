import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0

COORDINATE_LIMITS = {
    "lat": (-90.0, 90.0),
    "lng": (-180.0, 180.0),
}


class CoordinateError(ValueError):
    pass


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometers between two lat/lng pairs."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push the term slightly outside [0, 1] near antipodes.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_coordinate(value, kind: str) -> float:
    if kind not in COORDINATE_LIMITS:
        raise ValueError(f"Unknown coordinate kind: {kind}")

    if value is None or (isinstance(value, str) and not value.strip()):
        raise CoordinateError(f"The `{kind}` coordinate is required.")
    if isinstance(value, bool):
        raise CoordinateError(f"The `{kind}` coordinate must be a number.")

    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise CoordinateError(f"The `{kind}` coordinate must be a number.") from None

    if not math.isfinite(numeric):
        raise CoordinateError(f"The `{kind}` coordinate must be a finite number.")

    lower, upper = COORDINATE_LIMITS[kind]
    if numeric < lower or numeric > upper:
        raise CoordinateError(
            f"The `{kind}` coordinate must be between {lower:g} and {upper:g}."
        )
    return numeric


def extract_coordinates(document) -> Optional[tuple]:
    coordinates = (document or {}).get("coordinates")
    if not isinstance(coordinates, dict):
        return None
    try:
        return (
            parse_coordinate(coordinates.get("lat"), "lat"),
            parse_coordinate(coordinates.get("lng"), "lng"),
        )
    except CoordinateError:
        return None
