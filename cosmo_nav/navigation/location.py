"""
Location providers.

ReplayLocationProvider walks through a fixed list of fixes, one per call.
It drives the assistant from a recorded or synthetic track when no GPS
receiver is attached.
"""

import json
import logging
import time
from pathlib import Path
from typing import List, Sequence

from cosmo_nav.core.errors import PermissionDenied
from cosmo_nav.hardware.interfaces import ILocationProvider
from cosmo_nav.navigation.models import PositionSample

logger = logging.getLogger(__name__)


class ReplayLocationProvider(ILocationProvider):
    """
    Replays position samples in order, holding the last one at the end.

    Example:
        >>> provider = ReplayLocationProvider.from_file("walk.json")
        >>> sample = await provider.current_position()
    """

    def __init__(self, samples: Sequence[PositionSample]):
        """
        Initialize replay provider.

        Args:
            samples: Fixes to replay (at least one)

        Raises:
            ValueError: If no samples are given
        """
        if not samples:
            raise ValueError("ReplayLocationProvider needs at least one sample")
        self.samples_list: List[PositionSample] = list(samples)
        self.index = 0

    @classmethod
    def from_file(cls, path: str) -> 'ReplayLocationProvider':
        """
        Load fixes from a JSON list of ``{"lat", "lon", "heading"}`` objects.

        Raises:
            PermissionDenied: If the track file cannot be read
        """
        try:
            raw = json.loads(Path(path).read_text())
        except OSError as e:
            raise PermissionDenied("location", f"Cannot read track {path}: {e}")
        samples = [
            PositionSample(lat=float(p["lat"]), lon=float(p["lon"]), heading=p.get("heading"))
            for p in raw
        ]
        logger.info(f"Loaded {len(samples)} position samples from {path}")
        return cls(samples)

    async def current_position(self) -> PositionSample:
        sample = self.samples_list[min(self.index, len(self.samples_list) - 1)]
        if self.index < len(self.samples_list):
            self.index += 1
        return PositionSample(sample.lat, sample.lon, sample.heading, time.time())
