"""
Geographic helper functions.

Pure math over decimal-degree coordinates. No side effects.
"""

import math
from typing import Iterable, List

from cosmo_nav.navigation.models import Coord

EARTH_RADIUS_M = 6378137.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: Coord, b: Coord) -> float:
    """Distance in metres between two ``Coord`` values."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def heading_difference(bearing: float, heading: float) -> float:
    """Absolute angle between a bearing and a heading, in [0, 180]."""
    return abs(((bearing - heading + 540) % 360) - 180)


def min_distance_to_geometry(position: Coord, geometry: Iterable[Coord]) -> float:
    """
    Distance from ``position`` to the nearest vertex of a route geometry.

    Returns ``math.inf`` for an empty geometry.
    """
    nearest = math.inf
    for point in geometry:
        d = distance_between(position, point)
        if d < nearest:
            nearest = d
    return nearest


def offset_position(origin: Coord, bearing_deg: float, distance_m: float) -> Coord:
    """Point reached by travelling ``distance_m`` from ``origin`` along ``bearing_deg``."""
    ang = distance_m / EARTH_RADIUS_M
    brg = math.radians(bearing_deg)
    lat1 = math.radians(origin.lat)
    lon1 = math.radians(origin.lon)
    lat2 = math.asin(math.sin(lat1) * math.cos(ang) + math.cos(lat1) * math.sin(ang) * math.cos(brg))
    lon2 = lon1 + math.atan2(
        math.sin(brg) * math.sin(ang) * math.cos(lat1),
        math.cos(ang) - math.sin(lat1) * math.sin(lat2),
    )
    return Coord(math.degrees(lat2), math.degrees(lon2))


def decode_polyline(encoded: str, precision: int = 5) -> List[Coord]:
    """
    Decode a Google encoded polyline.

    Args:
        encoded: Polyline string from the directions API.
        precision: Number of decimal places encoded (5 for Google).

    Returns:
        Ordered list of coordinates.
    """
    coords: List[Coord] = []
    index = lat = lng = 0
    factor = 10 ** precision

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = result = 0
            while True:
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1f) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lng += deltas[1]
        coords.append(Coord(lat / factor, lng / factor))

    return coords


def format_distance(distance_m: float) -> str:
    """Spoken distance: whole metres under 1 km, otherwise kilometres."""
    if distance_m < 1000:
        return f"{round(distance_m)} meters"
    return f"{distance_m / 1000:.1f} kilometers"
