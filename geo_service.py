"""
Geo utilities for HopeLine

- Great-circle distance (Haversine) and responder ETA strings
- Approximate bounding boxes for Nigerian states and the FCT, used to
  attribute SOS alerts to a state
- Projection of latitude/longitude onto the national map SVG
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great circle distance between two points in decimal degrees, in km."""
    lat1_r, lng1_r = math.radians(lat1), math.radians(lng1)
    lat2_r, lng2_r = math.radians(lat2), math.radians(lng2)
    dlat = lat2_r - lat1_r
    dlng = lng2_r - lng1_r

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def round_half_up(value: float) -> int:
    """Round halves up: 0.5 -> 1, 2.5 -> 3."""
    return int(math.floor(value + 0.5))


def calculate_eta_minutes(distance_km: float, speed_kmh: float = 30.0) -> int:
    if not math.isfinite(speed_kmh) or speed_kmh <= 0:
        raise ValueError("speed_kmh must be a positive number")
    return round_half_up(distance_km * 60 / speed_kmh)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'s' if n > 1 else ''}"


def format_eta(minutes: int) -> str:
    if minutes < 1:
        return "Less than 1 minute"
    if minutes == 1:
        return "1 minute"
    if minutes < 60:
        return f"{minutes} minutes"

    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(rest, 'minute')}"


def calculate_eta(
    current_lat: float,
    current_lng: float,
    destination_lat: float,
    destination_lng: float,
    speed_kmh: float = 30.0,
) -> str:
    """Estimated arrival time as a human readable string."""
    distance = haversine_distance_km(current_lat, current_lng, destination_lat, destination_lng)
    return format_eta(calculate_eta_minutes(distance, speed_kmh))


# ------------------ STATE GEOFENCING ------------------

@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        # inclusive on every edge
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


NIGERIA_STATE_BOUNDS: Dict[str, BoundingBox] = {
    "Abia": BoundingBox(4.67, 6.02, 7.0, 8.01),
    "Adamawa": BoundingBox(7.45, 11.02, 11.13, 14.15),
    "Akwa Ibom": BoundingBox(4.33, 5.55, 7.3, 8.35),
    "Anambra": BoundingBox(5.42, 6.8, 6.6, 7.37),
    "Bauchi": BoundingBox(9.38, 13.0, 8.2, 12.0),
    "Bayelsa": BoundingBox(4.15, 5.38, 5.37, 6.75),
    "Benue": BoundingBox(6.38, 8.2, 7.76, 10.0),
    "Borno": BoundingBox(10.15, 13.88, 11.52, 14.85),
    "Cross River": BoundingBox(4.45, 7.02, 7.8, 9.68),
    "Delta": BoundingBox(4.88, 6.5, 5.0, 6.75),
    "Ebonyi": BoundingBox(5.67, 6.75, 7.5, 8.5),
    "Edo": BoundingBox(5.75, 7.6, 4.9, 6.75),
    "Ekiti": BoundingBox(7.25, 8.1, 4.7, 5.75),
    "Enugu": BoundingBox(5.88, 7.12, 6.8, 7.75),
    "Abuja": BoundingBox(7.9, 9.45, 6.4, 7.85),  # FCT
    "Gombe": BoundingBox(9.25, 11.45, 10.15, 11.75),
    "Imo": BoundingBox(5.15, 6.0, 6.6, 7.5),
    "Jigawa": BoundingBox(11.0, 13.15, 8.0, 11.0),
    "Kaduna": BoundingBox(9.0, 11.5, 6.1, 9.0),
    "Kano": BoundingBox(10.5, 12.5, 7.6, 9.5),
    "Katsina": BoundingBox(11.1, 13.3, 6.8, 8.9),
    "Kebbi": BoundingBox(10.1, 13.25, 3.5, 6.1),
    "Kogi": BoundingBox(6.55, 8.75, 5.3, 7.9),
    "Kwara": BoundingBox(8.0, 10.1, 2.7, 6.1),
    "Lagos": BoundingBox(6.3, 6.75, 3.0, 4.5),
    "Nasarawa": BoundingBox(7.7, 9.5, 6.8, 9.5),
    "Niger": BoundingBox(8.15, 11.4, 3.5, 7.6),
    "Ogun": BoundingBox(6.2, 7.9, 2.7, 4.9),
    "Ondo": BoundingBox(5.75, 8.5, 4.3, 6.1),
    "Osun": BoundingBox(7.0, 8.15, 4.0, 5.1),
    "Oyo": BoundingBox(7.05, 9.2, 2.6, 4.6),
    "Plateau": BoundingBox(8.35, 10.65, 8.5, 10.65),
    "Rivers": BoundingBox(4.3, 5.75, 6.35, 7.6),
    "Sokoto": BoundingBox(11.5, 13.9, 3.5, 7.1),
    "Taraba": BoundingBox(6.4, 9.5, 9.0, 12.0),
    "Yobe": BoundingBox(11.0, 13.5, 9.6, 13.5),
    "Zamfara": BoundingBox(10.7, 13.15, 5.1, 7.1),
}

NIGERIA_STATES: List[str] = sorted(NIGERIA_STATE_BOUNDS)

_ABUJA_ALIASES = ("abuja", "fct", "federal capital")


def _is_abuja_alias(name: str) -> bool:
    lower = name.lower()
    return any(alias in lower for alias in _ABUJA_ALIASES)


def normalize_state_name(state_name: Optional[str]) -> Optional[str]:
    if not state_name:
        return None
    if _is_abuja_alias(state_name):
        return "Abuja"
    stripped = state_name.strip()
    for name in NIGERIA_STATE_BOUNDS:
        if name.lower() == stripped.lower():
            return name
    return stripped


def is_point_in_state(lat: float, lng: float, state_name: Optional[str]) -> bool:
    normalized = normalize_state_name(state_name)
    bounds = NIGERIA_STATE_BOUNDS.get(normalized) if normalized else None
    if bounds is None:
        return False
    return bounds.contains(lat, lng)


def is_address_in_state(address: Optional[str], state_name: Optional[str]) -> bool:
    """Word-boundary match so that "Nigeria" never counts as "Niger"."""
    if not address or not state_name:
        return False

    if _is_abuja_alias(state_name):
        return _is_abuja_alias(address)

    pattern = r"\b" + re.escape(state_name.strip().lower()) + r"\b"
    return re.search(pattern, address.lower()) is not None


def states_for_point(lat: float, lng: float) -> List[str]:
    """All states whose box contains the point. The boxes overlap."""
    return [name for name in NIGERIA_STATES if NIGERIA_STATE_BOUNDS[name].contains(lat, lng)]


def extract_coordinates(location: Any) -> Optional[Tuple[float, float]]:
    """Normalize latitude/longitude, lat/lng or GeoPoint-like shapes."""
    if not location:
        return None

    if isinstance(location, dict):
        lat = location.get("latitude", location.get("lat", location.get("_lat")))
        lng = location.get("longitude", location.get("lng", location.get("_long")))
    else:
        lat = getattr(location, "latitude", None)
        lng = getattr(location, "longitude", None)

    try:
        if lat is None or lng is None:
            return None
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None


def alert_matches_state(alert: Dict[str, Any], state_name: str) -> bool:
    location = alert.get("location") or {}

    coords = extract_coordinates(location)
    if coords and is_point_in_state(coords[0], coords[1], state_name):
        return True

    if isinstance(location, dict):
        if is_address_in_state(location.get("address"), state_name):
            return True
        stored = location.get("state")
        if stored and normalize_state_name(stored) == normalize_state_name(state_name):
            return True
    return False


# ------------------ MAP PROJECTION ------------------
# SVG viewBox 0 0 745 600, bounds measured from the state path data.
MAP_MIN_X, MAP_MAX_X = 0.96, 682.64
MAP_MIN_Y, MAP_MAX_Y = 0.23, 585.32
MIN_LON, MAX_LON = 2.667421, 14.680752
MIN_LAT, MAX_LAT = 4.269658, 13.892750


def geo_to_svg(lat: float, lng: float) -> Tuple[float, float]:
    """Linear projection of a coordinate onto the national map; SVG y grows downwards."""
    x_pct = (lng - MIN_LON) / (MAX_LON - MIN_LON)
    y_pct = (MAX_LAT - lat) / (MAX_LAT - MIN_LAT)
    x = x_pct * (MAP_MAX_X - MAP_MIN_X) + MAP_MIN_X
    y = y_pct * (MAP_MAX_Y - MAP_MIN_Y) + MAP_MIN_Y
    return x, y


def sort_by_distance(items: Iterable[Dict[str, Any]], lat: float, lng: float) -> List[Dict[str, Any]]:
    """
    Annotate each record with distance_km from (lat, lng) and sort nearest first.
    Records without usable coordinates keep distance_km=None and go last.
    """
    located = []
    unlocated = []
    for item in items:
        row = dict(item)
        coords = extract_coordinates(row)
        if coords is None:
            row["distance_km"] = None
            unlocated.append(row)
            continue
        row["distance_km"] = round(haversine_distance_km(lat, lng, coords[0], coords[1]), 1)
        located.append(row)

    located.sort(key=lambda r: r["distance_km"])
    return located + unlocated
