"""
Google Directions adapter.

Turns a Directions API response into a Route: plain-text step instructions
(HTML stripped, transit legs rewritten into spoken directions), step end
coordinates and the decoded overview polyline.
"""

import asyncio
import logging
import re
from html import unescape
from typing import Any, Dict, Optional

import requests

from cosmo_nav.core.errors import NetworkFailure, NoRouteFound, RoutingDenied
from cosmo_nav.hardware.interfaces import IRouter
from cosmo_nav.navigation.geo_utils import decode_polyline
from cosmo_nav.navigation.models import Coord, Route, Step, TransitDetails, TravelMode

logger = logging.getLogger(__name__)

HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
RAIL_VEHICLES = ("SUBWAY", "TRAM", "RAIL")


def strip_html(text: str) -> str:
    """Remove HTML tags and entities from a directions instruction."""
    return re.sub(r"\s+", " ", unescape(HTML_TAG_PATTERN.sub(" ", text or ""))).strip()


def parse_transit_details(raw: Dict[str, Any]) -> TransitDetails:
    line = raw.get("line") or {}
    vehicle = line.get("vehicle") or {}
    return TransitDetails(
        vehicle_type=vehicle.get("type") or "transit",
        line_name=line.get("short_name") or line.get("name") or "",
        headsign=raw.get("headsign") or "",
        departure_stop=(raw.get("departure_stop") or {}).get("name", ""),
        arrival_stop=(raw.get("arrival_stop") or {}).get("name", ""),
        departure_time=(raw.get("departure_time") or {}).get("text", ""),
        num_stops=raw.get("num_stops"),
    )


def build_transit_instruction(details: TransitDetails) -> str:
    """
    Build a spoken instruction for a transit leg.

    Example:
        "Take bus 12 towards Downtown from Main St, departing at 9:05 AM.
        Ride for 4 stops to Oak Ave"
    """
    vehicle = details.vehicle_type.upper()
    if vehicle == "BUS" or vehicle in RAIL_VEHICLES:
        noun = "bus" if vehicle == "BUS" else vehicle.lower()
        instruction = f"Take {noun} {details.line_name}"
        if details.headsign:
            instruction += f" towards {details.headsign}"
        instruction += f" from {details.departure_stop}"
        if details.departure_time:
            instruction += f", departing at {details.departure_time}"
        stops = details.num_stops
        plural = "" if stops == 1 else "s"
        instruction += f". Ride for {stops or 'several'} stop{plural} to {details.arrival_stop}"
        return instruction

    instruction = f"Take {details.line_name or 'transit'} from {details.departure_stop} to {details.arrival_stop}"
    if details.departure_time:
        instruction += f", departing at {details.departure_time}"
    return instruction


def parse_directions_response(data: Dict[str, Any], mode: TravelMode) -> Route:
    """
    Convert a Directions API JSON body to a Route.

    Args:
        data: Decoded response body
        mode: Requested travel mode

    Returns:
        Route: Parsed route (first route, first leg)

    Raises:
        RoutingDenied: If the API rejected the request
        NoRouteFound: If no usable route was returned
    """
    status = data.get("status")
    if status == "REQUEST_DENIED":
        raise RoutingDenied(data.get("error_message") or "Directions request denied")
    if status != "OK" or not data.get("routes"):
        raise NoRouteFound(f"Directions returned {status}")

    route = data["routes"][0]
    legs = route.get("legs") or []
    if not legs:
        raise NoRouteFound("Directions route has no legs")
    leg = legs[0]

    polyline = (route.get("overview_polyline") or {}).get("points")
    if not polyline:
        raise NoRouteFound("Could not get route path")

    steps = []
    for raw in leg.get("steps") or []:
        end = raw.get("end_location") or {}
        end_coord = None
        if end.get("lat") is not None and end.get("lng") is not None:
            end_coord = Coord(float(end["lat"]), float(end["lng"]))

        instruction = strip_html(raw.get("html_instructions", "")) or "Continue"
        details = None
        if mode is TravelMode.TRANSIT and raw.get("transit_details"):
            details = parse_transit_details(raw["transit_details"])
            instruction = build_transit_instruction(details)

        steps.append(Step(
            instruction=instruction,
            distance_m=float((raw.get("distance") or {}).get("value", 0)),
            duration_s=float((raw.get("duration") or {}).get("value", 0)),
            end_coordinate=end_coord,
            travel_mode=(raw.get("travel_mode") or mode.value).lower(),
            transit_details=details,
        ))

    return Route(
        steps=steps,
        geometry=decode_polyline(polyline),
        distance_m=float((leg.get("distance") or {}).get("value", 0)),
        duration_s=float((leg.get("duration") or {}).get("value", 0)),
        travel_mode=mode,
    )


class GoogleDirectionsRouter(IRouter):
    """Directions via the Google Directions API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://maps.googleapis.com/maps/api/directions/json",
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.url = url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    async def route(self, origin: Coord, destination: Coord, mode: TravelMode) -> Route:
        return await asyncio.to_thread(self.fetch_route, origin, destination, mode)

    def fetch_route(self, origin: Coord, destination: Coord, mode: TravelMode) -> Route:
        """
        Request a route (blocking).

        Raises:
            RoutingDenied: If the API key was rejected
            NoRouteFound: If no route exists
            NetworkFailure: If the request failed
        """
        mode = TravelMode(mode)
        params = {
            "origin": f"{origin.lat},{origin.lon}",
            "destination": f"{destination.lat},{destination.lon}",
            "mode": mode.value,
            "key": self.api_key,
        }
        logger.info(f"Fetching {mode.value} route to {destination.lat:.5f},{destination.lon:.5f}")
        try:
            resp = self.session.get(self.url, params=params, timeout=self.timeout_sec)
        except requests.RequestException as e:
            raise NetworkFailure("directions", str(e))

        if not resp.ok:
            logger.warning(f"Directions error response: {resp.text[:200]}")
            raise NetworkFailure("directions", f"Status {resp.status_code}", resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise NetworkFailure("directions", f"Invalid JSON: {e}")

        route = parse_directions_response(data, mode)
        logger.info(f"Route: {len(route.steps)} steps, {route.distance_m:.0f} m")
        return route
