"""
Place search.

Google Places adapter plus the ranking and announcement helpers shared by the
command dispatcher and the options handler.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from cosmo_nav.core.errors import NetworkFailure
from cosmo_nav.hardware.interfaces import IPlaceSearch
from cosmo_nav.navigation.geo_utils import distance_between, format_distance
from cosmo_nav.navigation.models import Candidate, Coord

logger = logging.getLogger(__name__)

NEARBY_RADIUS_M = 5000
WIDER_RADIUS_M = 15000
TEXT_RADIUS_M = 50000
MIN_NEARBY_RESULTS = 3


def rank_candidates(
    candidates: Sequence[Candidate],
    query: str,
    origin: Optional[Coord] = None,
    limit: int = 50
) -> List[Candidate]:
    """
    Order candidates by name relevance, then distance.

    Exact name matches come first, then names starting with the query, then
    names containing it. Distances are filled in from ``origin`` when given.

    Args:
        candidates: Unranked search results
        query: Search text
        origin: User position for distance computation
        limit: Maximum number of candidates kept

    Returns:
        List of at most ``limit`` candidates
    """
    q = query.lower().strip()
    measured = []
    for c in candidates:
        if origin is not None:
            c = Candidate(
                label=c.label,
                coordinates=c.coordinates,
                address=c.address,
                distance_m=distance_between(origin, c.coordinates),
                place_id=c.place_id,
                rating=c.rating,
            )
        measured.append(c)

    def sort_key(c: Candidate):
        name = c.label.lower()
        return (name != q, not name.startswith(q), q not in name, c.distance_m)

    return sorted(measured, key=sort_key)[:limit]


def build_search_announcement(candidates: Sequence[Candidate], announced: int = 3) -> str:
    """
    Spoken summary of search results.

    Example:
        "Found 2 results. Option 1: Blue Bottle, 300 meters away. Option 2: ..."
    """
    count = len(candidates)
    text = f"Found {count} result{'s' if count != 1 else ''}. "
    for i, c in enumerate(candidates[:announced]):
        text += f"Option {i + 1}: {c.label}, {format_distance(c.distance_m)} away. "
    text += "Just say the number to select, or say Hey Cosmo, choose option 1."
    return text


def build_options_listing(candidates: Sequence[Candidate], listed: int = 5) -> str:
    """Spoken listing of the current options (used for "list options")."""
    if not candidates:
        return "No search results available. Please search for a location first."
    parts = ["Here are the options:"]
    for i, c in enumerate(candidates[:listed]):
        parts.append(f"Option {i + 1}: {c.label}, {format_distance(c.distance_m)} away.")
    return " ".join(parts)


def _parse_place(place: Dict[str, Any]) -> Optional[Candidate]:
    location = (place.get("geometry") or {}).get("location") or {}
    if location.get("lat") is None or location.get("lng") is None:
        return None
    return Candidate(
        label=place.get("name") or "Unknown location",
        coordinates=Coord(float(location["lat"]), float(location["lng"])),
        address=place.get("formatted_address") or place.get("vicinity") or "",
        place_id=place.get("place_id") or "",
        rating=float(place.get("rating") or 0),
    )


class GooglePlacesSearch(IPlaceSearch):
    """
    Places search with widening radius.

    Nearby search within 5 km is used when it finds at least three places;
    otherwise a 15 km nearby search, then a 50 km text search.
    """

    def __init__(
        self,
        api_key: str,
        nearby_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json",
        text_url: str = "https://maps.googleapis.com/maps/api/place/textsearch/json",
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.nearby_url = nearby_url
        self.text_url = text_url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    async def search(self, query: str, near: Coord) -> List[Candidate]:
        return await asyncio.to_thread(self.search_places, query, near)

    def search_places(self, query: str, near: Coord) -> List[Candidate]:
        """
        Search places (blocking).

        Raises:
            NetworkFailure: If a request failed
        """
        location = f"{near.lat},{near.lon}"

        results = self._get(self.nearby_url, {"location": location, "radius": NEARBY_RADIUS_M, "keyword": query})
        if len(results) >= MIN_NEARBY_RESULTS:
            logger.info(f"Nearby search (5km) returned {len(results)} results")
            return results

        logger.info("Nearby search (5km) returned few results, trying 15km radius")
        results = self._get(self.nearby_url, {"location": location, "radius": WIDER_RADIUS_M, "keyword": query})
        if results:
            return results

        logger.info("Nearby searches failed, falling back to text search")
        return self._get(self.text_url, {"query": query, "location": location, "radius": TEXT_RADIUS_M})

    def _get(self, url: str, params: Dict[str, Any]) -> List[Candidate]:
        params = dict(params, key=self.api_key)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout_sec)
        except requests.RequestException as e:
            raise NetworkFailure("places", str(e))
        if not resp.ok:
            raise NetworkFailure("places", f"Status {resp.status_code}", resp.status_code)

        data = resp.json()
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning(f"Places search status: {status}")
            return []

        candidates = []
        for place in data.get("results") or []:
            candidate = _parse_place(place)
            if candidate is not None:
                candidates.append(candidate)
        return candidates
