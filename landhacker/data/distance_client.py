import math
import logging
from typing import Optional

import httpx

from .base import DistanceClient, DistanceInfo
from ..core.cache import cache
from ..core.config import settings

logger = logging.getLogger(__name__)

# Metro areas the land market is measured against (name, lat, lon)
MAJOR_CITIES = [
    ("Austin, TX", 30.2672, -97.7431),
    ("Dallas, TX", 32.7767, -96.7970),
    ("Fort Worth, TX", 32.7555, -97.3308),
    ("Houston, TX", 29.7604, -95.3698),
    ("San Antonio, TX", 29.4241, -98.4936),
    ("El Paso, TX", 31.7619, -106.4850),
]

EARTH_RADIUS_M = 6_371_000
METRES_PER_MILE = 1609.344
# Road distance vs great-circle distance for rural Texas
ROAD_FACTOR = 1.25
AVERAGE_SPEED_MPH = 55

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))

def miles_text(metres: float) -> str:
    return f"{metres / METRES_PER_MILE:.1f} mi"

def duration_text(seconds: float) -> str:
    minutes = max(1, int(round(seconds / 60)))
    if minutes < 60:
        return f"{minutes} min" if minutes == 1 else f"{minutes} mins"
    hours, rem = divmod(minutes, 60)
    unit = "hour" if hours == 1 else "hours"
    return f"{hours} {unit} {rem} mins" if rem else f"{hours} {unit}"

def _cache_key(latitude: float, longitude: float) -> str:
    # ~100m grid so nearby clicks share a lookup
    return f"distance:{round(latitude, 3)},{round(longitude, 3)}"

class MockDistance(DistanceClient):
    """
    Straight-line distance to the nearest metro, scaled by a road factor.
    Deterministic and free of external dependencies.
    """
    async def distance_to_city(self, latitude: float, longitude: float) -> Optional[DistanceInfo]:
        if latitude is None or longitude is None:
            return None
        name, metres = min(
            ((city, haversine_m(latitude, longitude, lat, lon)) for city, lat, lon in MAJOR_CITIES),
            key=lambda pair: pair[1],
        )
        road_m = metres * ROAD_FACTOR
        seconds = road_m / METRES_PER_MILE / AVERAGE_SPEED_MPH * 3600
        return DistanceInfo(
            nearest_city=name,
            distance_text=miles_text(road_m),
            distance_value=int(round(road_m)),
            duration_text=duration_text(seconds),
            duration_value=int(round(seconds)),
        )

class GoogleDistance(DistanceClient):
    """
    Google Distance Matrix: one origin against every metro, keep the shortest
    drive. Results are cached per ~100m cell.
    """
    def __init__(self, api_key: str, base_url: str = settings.DISTANCE_BASE_URL, timeout: float = 10,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def distance_to_city(self, latitude: float, longitude: float) -> Optional[DistanceInfo]:
        if latitude is None or longitude is None:
            return None
        key = _cache_key(latitude, longitude)
        cached = cache.get_json(key)
        if cached:
            return DistanceInfo(**cached)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            r = await client.get(self.base_url, params={
                "origins": f"{latitude},{longitude}",
                "destinations": "|".join(city for city, _, _ in MAJOR_CITIES),
                "units": "imperial",
                "key": self.api_key,
            })
            r.raise_for_status()
            j = r.json()

        if j.get("status") != "OK":
            logger.warning("Distance Matrix returned status %s", j.get("status"))
            return None
        elements = (j.get("rows") or [{}])[0].get("elements", [])
        best: Optional[DistanceInfo] = None
        for (city, _, _), el in zip(MAJOR_CITIES, elements):
            if el.get("status") != "OK":
                continue
            info = DistanceInfo(
                nearest_city=city,
                distance_text=el["distance"]["text"],
                distance_value=int(el["distance"]["value"]),
                duration_text=el["duration"]["text"],
                duration_value=int(el["duration"]["value"]),
            )
            if best is None or info.distance_value < best.distance_value:
                best = info
        if best is not None:
            cache.set_json(key, best.__dict__)
        return best

def distance_client() -> DistanceClient:
    """
    Factory picks mock or http based on env flags.
    """
    if settings.DISTANCE_PROVIDER == "http" and settings.GOOGLE_MAPS_API_KEY:
        return GoogleDistance(settings.GOOGLE_MAPS_API_KEY)
    return MockDistance()
