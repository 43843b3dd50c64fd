"""
Pedestrian hazards.

OverpassHazardSource queries OpenStreetMap for crossings, signals, kerbs and
construction near the user. HazardTracker decides which of them to announce,
with a time-to-live de-duplication so a hazard is not repeated every sample.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from cosmo_nav.core.errors import NetworkFailure
from cosmo_nav.core.state_manager import NavigationRunState
from cosmo_nav.hardware.interfaces import IHazardSource
from cosmo_nav.navigation.geo_utils import haversine_distance
from cosmo_nav.navigation.models import Coord, HazardRecord

logger = logging.getLogger(__name__)

OVERPASS_QUERY = """
[out:json][timeout:5];
(
  node(around:{r},{lat},{lon})["highway"="crossing"];
  node(around:{r},{lat},{lon})["highway"="traffic_signals"];
  node(around:{r},{lat},{lon})["crossing"="marked"];
  node(around:{r},{lat},{lon})["crossing"="uncontrolled"];
  node(around:{r},{lat},{lon})["railway"="level_crossing"];
  node(around:{r},{lat},{lon})["barrier"="kerb"];
  way(around:{r},{lat},{lon})["highway"="construction"];
);
out center;
"""


def describe_hazard(tags: Dict[str, str]) -> Optional[str]:
    """
    Spoken description for an OSM element, or None if it is not a hazard.

    Args:
        tags: OSM tags of the element
    """
    if tags.get("highway") == "crossing" or tags.get("crossing"):
        if tags.get("crossing") == "uncontrolled":
            return "Uncontrolled crosswalk ahead"
        if tags.get("crossing") == "marked":
            return "Marked crosswalk ahead"
        return "Crosswalk ahead"
    if tags.get("highway") == "traffic_signals":
        return "Traffic light ahead"
    if tags.get("railway") == "level_crossing":
        return "Railway crossing ahead, use extreme caution"
    if tags.get("barrier") == "kerb":
        return "Curb ahead"
    if tags.get("highway") == "construction":
        return "Construction zone ahead, use caution"
    return None


def parse_overpass_elements(data: Dict[str, Any], lat: float, lon: float) -> List[HazardRecord]:
    """
    Convert an Overpass response into hazards sorted by distance.

    Ways are placed at their center point.
    """
    hazards = []
    for element in data.get("elements") or []:
        center = element.get("center") or {}
        h_lat = element.get("lat", center.get("lat"))
        h_lon = element.get("lon", center.get("lon"))
        if h_lat is None or h_lon is None:
            continue

        tags = element.get("tags") or {}
        description = describe_hazard(tags)
        if not description:
            continue

        hazards.append(HazardRecord(
            id=f"{element.get('id')}-{element.get('type')}",
            description=description,
            lat=float(h_lat),
            lon=float(h_lon),
            kind=tags.get("highway") or tags.get("railway") or tags.get("barrier") or "hazard",
            distance_m=haversine_distance(lat, lon, float(h_lat), float(h_lon)),
        ))

    hazards.sort(key=lambda h: h.distance_m)
    return hazards


class OverpassHazardSource(IHazardSource):
    """Hazards from the Overpass API."""

    def __init__(
        self,
        url: str = "https://overpass-api.de/api/interpreter",
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    async def hazards_near(self, lat: float, lon: float, radius_m: float) -> List[HazardRecord]:
        return await asyncio.to_thread(self.fetch_hazards, lat, lon, radius_m)

    def fetch_hazards(self, lat: float, lon: float, radius_m: float) -> List[HazardRecord]:
        """
        Query hazards (blocking).

        Raises:
            NetworkFailure: If the request failed
        """
        query = OVERPASS_QUERY.format(r=int(radius_m), lat=lat, lon=lon)
        try:
            resp = self.session.post(self.url, data=query, timeout=self.timeout_sec)
        except requests.RequestException as e:
            raise NetworkFailure("overpass", str(e))
        if not resp.ok:
            raise NetworkFailure("overpass", f"Status {resp.status_code}", resp.status_code)
        return parse_overpass_elements(resp.json(), lat, lon)


class HazardTracker:
    """
    Selects at most one hazard to announce per position sample.

    A hazard qualifies when it lies inside the distance window and has not
    been announced within the last ``ttl_sec`` seconds.
    """

    def __init__(self, window_min_m: float = 15.0, window_max_m: float = 30.0, ttl_sec: float = 60.0):
        self.window_min_m = window_min_m
        self.window_max_m = window_max_m
        self.ttl_sec = ttl_sec

    def evict_expired(self, run: NavigationRunState, now: float):
        expired = [hid for hid, expiry in run.announced_hazards.items() if expiry <= now]
        for hid in expired:
            del run.announced_hazards[hid]

    def next_alert(
        self,
        run: NavigationRunState,
        hazards: Sequence[HazardRecord],
        position: Coord,
        now: float
    ) -> Optional[HazardRecord]:
        """
        Pick and record the hazard to announce.

        Args:
            run: Current run state (holds the de-duplication map)
            hazards: Hazards near the user, in source order
            position: Current position (used when a hazard has no distance)
            now: Current monotonic time

        Returns:
            The hazard to announce (with distance filled in), or None
        """
        self.evict_expired(run, now)
        for hazard in hazards:
            if hazard.id in run.announced_hazards:
                continue
            distance = hazard.distance_m
            if distance is None:
                distance = haversine_distance(position.lat, position.lon, hazard.lat, hazard.lon)
            if self.window_min_m <= distance <= self.window_max_m:
                run.announced_hazards[hazard.id] = now + self.ttl_sec
                if hazard.distance_m is None:
                    hazard = HazardRecord(hazard.id, hazard.description, hazard.lat, hazard.lon,
                                          hazard.kind, distance)
                return hazard
        return None
