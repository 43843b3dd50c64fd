"""
Navigation subsystem for Cosmo.

Route models, geographic helpers, the navigation monitor and service
adapters for places, directions, hazards and weather. Import the monitor and
adapters from their modules; this package only re-exports the models.
"""

from cosmo_nav.navigation.models import (
    Candidate, Coord, HazardRecord, PositionSample, Route, Step, TransitDetails, TravelMode
)

__all__ = [
    'Candidate',
    'Coord',
    'HazardRecord',
    'PositionSample',
    'Route',
    'Step',
    'TransitDetails',
    'TravelMode',
]
