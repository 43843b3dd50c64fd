"""
Wrong-way detection.

Compares the device heading with the bearing to the current step's end point.
An alert needs sustained travel away from the target: the user must move a
minimum distance from where the wrong heading was first seen, and alerts are
spaced by a cooldown.
"""

import logging
from typing import Optional

from cosmo_nav.config.settings import NavigationConfig
from cosmo_nav.core.state_manager import NavigationRunState
from cosmo_nav.navigation.geo_utils import calculate_bearing, distance_between, heading_difference
from cosmo_nav.navigation.models import Coord, PositionSample

logger = logging.getLogger(__name__)

WRONG_WAY_MESSAGE = "You are going the wrong way. Turn around."


class WrongWayDetector:
    """
    Anchor-based wrong-way state machine.

    The anchor is set on the first wrong-heading sample, cleared when an
    alert fires and cleared on any sample whose heading is within tolerance.
    """

    def __init__(self, config: Optional[NavigationConfig] = None):
        self.config = config or NavigationConfig()

    def check(
        self,
        run: NavigationRunState,
        sample: PositionSample,
        target: Coord,
        now: float
    ) -> bool:
        """
        Update wrong-way tracking for one sample.

        Args:
            run: Current run state (anchor and last alert time)
            sample: Position fix with heading
            target: End coordinate of the current step
            now: Current monotonic time

        Returns:
            bool: True if a wrong-way alert should be spoken now
        """
        if not sample.has_heading:
            return False

        cfg = self.config
        position = sample.coord
        bearing = calculate_bearing(position.lat, position.lon, target.lat, target.lon)
        diff = heading_difference(bearing, sample.heading)
        remaining = distance_between(position, target)

        if not (diff > cfg.wrong_way_angle_deg and remaining > cfg.wrong_way_min_remaining_m):
            run.wrong_way_anchor = None
            return False

        if run.wrong_way_anchor is None:
            run.wrong_way_anchor = position
            logger.debug(f"Wrong-way anchor set (heading off by {diff:.0f} deg)")
            return False

        travelled = distance_between(run.wrong_way_anchor, position)
        cooled_down = (
            run.last_wrong_way_alert is None
            or now - run.last_wrong_way_alert >= cfg.wrong_way_cooldown_sec
        )
        if travelled >= cfg.wrong_way_min_travel_m and cooled_down:
            run.last_wrong_way_alert = now
            run.wrong_way_anchor = None
            logger.info(f"Wrong way: {travelled:.0f} m travelled away from step target")
            return True
        return False
