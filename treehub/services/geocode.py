"""Geocoder with a static lookup of monitored cities + Nominatim fallback.

Fast path: the cities covered by the weather sweep resolve instantly with
no network call and no rate-limit sleep.  Only locations outside that table
fall through to the Nominatim API.  Also home to the haversine distance
used by the match scorer and storm crew targeting.
"""

import asyncio
import logging
import math
import re
from typing import NamedTuple, Optional, Tuple

import httpx

logger = logging.getLogger("treehub.geocode")

EARTH_RADIUS_MILES = 3959
NO_DISTANCE = 999


class City(NamedTuple):
    city: str
    state: str
    lat: float
    lon: float


# ── Monitored cities ─────────────────────────────────────────────────────────
# Major US metros polled by the weather sweep.
MONITORED_CITIES: list[City] = [
    City("New York", "NY", 40.7128, -74.0060),
    City("Los Angeles", "CA", 34.0522, -118.2437),
    City("Chicago", "IL", 41.8781, -87.6298),
    City("Houston", "TX", 29.7604, -95.3698),
    City("Phoenix", "AZ", 33.4484, -112.0740),
    City("Philadelphia", "PA", 39.9526, -75.1652),
    City("San Antonio", "TX", 29.4241, -98.4936),
    City("San Diego", "CA", 32.7157, -117.1611),
    City("Dallas", "TX", 32.7767, -96.7970),
    City("San Jose", "CA", 37.3382, -121.8863),
    City("Austin", "TX", 30.2672, -97.7431),
    City("Jacksonville", "FL", 30.3322, -81.6557),
    City("San Francisco", "CA", 37.7749, -122.4194),
    City("Columbus", "OH", 39.9612, -82.9988),
    City("Charlotte", "NC", 35.2271, -80.8431),
    City("Fort Worth", "TX", 32.7555, -97.3308),
    City("Indianapolis", "IN", 39.7684, -86.1581),
    City("Seattle", "WA", 47.6062, -122.3321),
    City("Denver", "CO", 39.7392, -104.9903),
    City("Boston", "MA", 42.3601, -71.0589),
    City("El Paso", "TX", 31.7619, -106.4850),
    City("Detroit", "MI", 42.3314, -83.0458),
    City("Nashville", "TN", 36.1627, -86.7816),
    City("Memphis", "TN", 35.1495, -90.0490),
    City("Portland", "OR", 45.5152, -122.6784),
    City("Oklahoma City", "OK", 35.4676, -97.5164),
    City("Las Vegas", "NV", 36.1699, -115.1398),
    City("Louisville", "KY", 38.2527, -85.7585),
    City("Baltimore", "MD", 39.2904, -76.6122),
    City("Milwaukee", "WI", 43.0389, -87.9065),
    City("Albuquerque", "NM", 35.0844, -106.6504),
    City("Tucson", "AZ", 32.2226, -110.9747),
    City("Fresno", "CA", 36.7378, -119.7871),
    City("Sacramento", "CA", 38.5816, -121.4944),
    City("Kansas City", "MO", 39.0997, -94.5786),
    City("Mesa", "AZ", 33.4152, -111.8315),
    City("Virginia Beach", "VA", 36.8529, -75.9780),
    City("Atlanta", "GA", 33.7490, -84.3880),
    City("Colorado Springs", "CO", 38.8339, -104.8214),
    City("Raleigh", "NC", 35.7796, -78.6382),
    City("Omaha", "NE", 41.2565, -95.9345),
    City("Miami", "FL", 25.7617, -80.1918),
    City("Oakland", "CA", 37.8044, -122.2711),
    City("Minneapolis", "MN", 44.9778, -93.2650),
    City("Tulsa", "OK", 36.1540, -95.9928),
    City("Cleveland", "OH", 41.4993, -81.6944),
    City("Wichita", "KS", 37.6872, -97.3301),
    City("Arlington", "TX", 32.7357, -97.1081),
    City("New Orleans", "LA", 29.9511, -90.0715),
    City("Bakersfield", "CA", 35.3733, -119.0187),
    City("Tampa", "FL", 27.9506, -82.4572),
]

_LOCATIONS: dict[str, Tuple[float, float]] = {}
for _c in MONITORED_CITIES:
    _LOCATIONS[_c.city.lower()] = (_c.lat, _c.lon)
    _LOCATIONS[f"{_c.city.lower()}, {_c.state.lower()}"] = (_c.lat, _c.lon)

_STATE_SUFFIX = re.compile(r"^[a-z]{2}$")


# ─── DISTANCE ────────────────────────────────────────────────────────────────

def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def has_coordinates(obj) -> bool:
    return getattr(obj, "latitude", None) is not None and getattr(obj, "longitude", None) is not None


def travel_distance(a, b) -> float:
    """Miles between two records with latitude/longitude, or 999 if unknown."""
    if not (has_coordinates(a) and has_coordinates(b)):
        return NO_DISTANCE
    return haversine_miles(a.latitude, a.longitude, b.latitude, b.longitude)


# ─── LOOKUP ──────────────────────────────────────────────────────────────────

def _static_lookup(location: str) -> Optional[Tuple[float, float]]:
    """Return coordinates from the static table, or None.

    A trailing ", ST" pins the state: only that state's entry can match.
    Without a state, a monitored city name must appear as whole words.
    """
    key = location.strip().lower()
    if key in _LOCATIONS:
        return _LOCATIONS[key]
    for prefix in ("city of ", "town of "):
        if key.startswith(prefix):
            key = key[len(prefix):]
            if key in _LOCATIONS:
                return _LOCATIONS[key]

    parts = [p.strip() for p in key.split(",")]
    if len(parts) >= 2 and _STATE_SUFFIX.match(parts[-1]):
        return _LOCATIONS.get(f"{parts[-2]}, {parts[-1]}")

    # Longest name first so "kansas city" wins over shorter partial hits
    for c in sorted(MONITORED_CITIES, key=lambda c: len(c.city), reverse=True):
        if re.search(rf"\b{re.escape(c.city.lower())}\b", key):
            return (c.lat, c.lon)
    return None


_cache: dict[str, Optional[Tuple[float, float]]] = {}
_lock = asyncio.Lock()


async def geocode(location: str, country: str = "us") -> Optional[Tuple[float, float]]:
    """Return (latitude, longitude) for a location string.

    Checks the static table first.  Falls back to Nominatim for unknown
    locations with a 1.1-second rate-limit sleep between unique API calls.
    """
    if not location:
        return None

    fast = _static_lookup(location)
    if fast:
        return fast

    key = f"{location.strip().lower()}|{country}"
    if key in _cache:
        return _cache[key]

    async with _lock:
        if key in _cache:
            return _cache[key]

        result: Optional[Tuple[float, float]] = None
        try:
            async with httpx.AsyncClient(timeout=8.0) as client:
                resp = await client.get(
                    "https://nominatim.openstreetmap.org/search",
                    params={
                        "q": location,
                        "format": "json",
                        "limit": 1,
                        "countrycodes": country,
                    },
                    headers={"User-Agent": "TreeHub/1.0 (treehub geocoder)"},
                )
                data = resp.json()
                if data:
                    result = (float(data[0]["lat"]), float(data[0]["lon"]))
                    logger.info(f"Nominatim geocoded '{location}' → {result}")
                else:
                    logger.debug(f"No Nominatim result for '{location}'")
        except Exception as exc:
            logger.warning(f"Nominatim geocode failed for '{location}': {exc}")

        _cache[key] = result
        await asyncio.sleep(1.1)
        return result
