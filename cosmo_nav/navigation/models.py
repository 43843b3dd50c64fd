"""
Navigation data models.

Coordinates are carried as ``Coord(lat, lon)``; route geometry is an ordered
list of them. Steps, candidates and hazards are immutable once built.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class TravelMode(str, Enum):
    """Supported travel modes (values match the directions API)."""

    WALKING = "walking"
    TRANSIT = "transit"

    @property
    def spoken_name(self) -> str:
        return "walking" if self is TravelMode.WALKING else "public transit"


@dataclass(frozen=True)
class Coord:
    """Geographic coordinate in decimal degrees."""

    lat: float
    lon: float

    @classmethod
    def from_lon_lat(cls, pair) -> 'Coord':
        return cls(lat=float(pair[1]), lon=float(pair[0]))

    def as_lon_lat(self):
        return (self.lon, self.lat)


@dataclass(frozen=True)
class PositionSample:
    """One location fix. ``heading`` is None when the device reports none."""

    lat: float
    lon: float
    heading: Optional[float] = None
    timestamp: float = 0.0

    @property
    def coord(self) -> Coord:
        return Coord(self.lat, self.lon)

    @property
    def has_heading(self) -> bool:
        return self.heading is not None and self.heading >= 0


@dataclass(frozen=True)
class TransitDetails:
    """Vehicle leg of a transit route."""

    vehicle_type: str = "transit"
    line_name: str = ""
    headsign: str = ""
    departure_stop: str = ""
    arrival_stop: str = ""
    departure_time: str = ""
    num_stops: Optional[int] = None


@dataclass(frozen=True)
class Step:
    """One leg of a route."""

    instruction: str
    distance_m: float = 0.0
    duration_s: float = 0.0
    end_coordinate: Optional[Coord] = None
    travel_mode: str = "walking"
    transit_details: Optional[TransitDetails] = None


@dataclass
class Route:
    """A computed route: ordered steps plus the overview geometry."""

    steps: List[Step] = field(default_factory=list)
    geometry: List[Coord] = field(default_factory=list)
    distance_m: float = 0.0
    duration_s: float = 0.0
    travel_mode: TravelMode = TravelMode.WALKING

    @property
    def has_steps(self) -> bool:
        return len(self.steps) > 0

    @property
    def transit_steps(self) -> List[Step]:
        return [s for s in self.steps if s.transit_details is not None]


@dataclass(frozen=True)
class Candidate:
    """A ranked search result eligible for numbered selection."""

    label: str
    coordinates: Coord
    address: str = ""
    distance_m: float = 0.0
    place_id: str = ""
    rating: float = 0.0


@dataclass(frozen=True)
class HazardRecord:
    """A point of interest near the user warranting an announcement."""

    id: str
    description: str
    lat: float
    lon: float
    kind: str = "hazard"
    distance_m: Optional[float] = None
