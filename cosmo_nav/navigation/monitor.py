"""
Navigation Monitor.

Samples the user's position on a fixed schedule while navigating and, per
sample: announces each step once, warns about nearby hazards, detects
wrong-way travel, advances the step index and triggers re-routing when the
user leaves the route.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Set

from cosmo_nav.config.settings import NavigationConfig
from cosmo_nav.core.errors import PermissionDenied
from cosmo_nav.core.state_manager import NavigationRunState, StateManager
from cosmo_nav.hardware.interfaces import IHazardSource, ILocationProvider
from cosmo_nav.navigation.geo_utils import distance_between, min_distance_to_geometry
from cosmo_nav.navigation.hazards import HazardTracker
from cosmo_nav.navigation.models import Candidate, PositionSample, Route
from cosmo_nav.navigation.wrong_way import WRONG_WAY_MESSAGE, WrongWayDetector
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator

logger = logging.getLogger(__name__)

StopCallback = Callable[[bool], Awaitable[None]]
OffRouteCallback = Callable[[], Awaitable[None]]

OFF_ROUTE_MESSAGE = "Off route. Recalculating"
LOCATION_DENIED_MESSAGE = "Location access is needed for navigation. Stopping navigation."


class NavigationMonitor:
    """
    Position-driven guidance loop.

    Each sample runs as its own task so a slow collaborator never delays the
    schedule; at most ``max_pending_ticks`` samples are in flight. Every tick
    remembers the run it started in and abandons its work once that run has
    been stopped or replaced.
    """

    def __init__(
        self,
        state: StateManager,
        location: ILocationProvider,
        hazards: Optional[IHazardSource],
        speech: SpeechOutputCoordinator,
        config: Optional[NavigationConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize navigation monitor.

        Args:
            state: Shared state manager
            location: Position source
            hazards: Hazard source (None disables hazard alerts)
            speech: Speech coordinator for announcements
            config: Navigation thresholds
            clock: Monotonic time source
            sleep: Sleep coroutine function used between samples
        """
        self.state = state
        self.location = location
        self.hazards = hazards
        self.speech = speech
        self.config = config or NavigationConfig()
        self._clock = clock
        self._sleep = sleep

        self.hazard_tracker = HazardTracker(
            window_min_m=self.config.hazard_window_min_m,
            window_max_m=self.config.hazard_window_max_m,
            ttl_sec=self.config.hazard_ttl_sec,
        )
        self.wrong_way = WrongWayDetector(self.config)

        self._on_stop: Optional[StopCallback] = None
        self._on_off_route: Optional[OffRouteCallback] = None
        self._sampler: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    def bind(self, on_stop: StopCallback, on_off_route: OffRouteCallback):
        """
        Connect the monitor to the command dispatcher.

        Args:
            on_stop: Called with True on arrival, False on a fatal error
            on_off_route: Called once when the user leaves the route
        """
        self._on_stop = on_stop
        self._on_off_route = on_off_route

    @property
    def is_running(self) -> bool:
        return self._sampler is not None and not self._sampler.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, route: Route, destination: Optional[Candidate]) -> NavigationRunState:
        """
        Begin a new run on ``route``.

        Args:
            route: Route to follow
            destination: Destination used for re-routing

        Returns:
            NavigationRunState: The fresh run state
        """
        self.stop()
        nav = self.state.navigation
        nav.route = route
        nav.rerouting = False
        run = nav.new_run(destination)
        logger.info(f"Navigation run {run.run_id} started ({len(route.steps)} steps)")
        self._sampler = asyncio.get_running_loop().create_task(self._sample_loop(run.run_id))
        return run

    def stop(self):
        """Stop sampling. Ticks already in flight see the run as stale."""
        sampler, self._sampler = self._sampler, None
        if sampler is not None and sampler is not asyncio.current_task() and not sampler.done():
            sampler.cancel()
        if self.state.navigation.run is not None:
            logger.info(f"Navigation run {self.state.navigation.run.run_id} stopped")
        self.state.navigation.run = None

    async def shutdown(self):
        """Stop sampling and cancel ticks in flight."""
        self.stop()
        ticks = [t for t in self._ticks if t is not asyncio.current_task()]
        for task in ticks:
            task.cancel()
        if ticks:
            await asyncio.gather(*ticks, return_exceptions=True)

    async def _sample_loop(self, run_id: int):
        while not self._is_stale(run_id):
            await self._sleep(self.config.sample_interval_sec)
            if self._is_stale(run_id):
                return
            if len(self._ticks) >= self.config.max_pending_ticks:
                logger.warning("Navigation samples backing up, skipping one")
                continue
            task = asyncio.get_running_loop().create_task(self._run_tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    async def _run_tick(self):
        try:
            await self.tick()
        except Exception as e:
            logger.error(f"Navigation tick failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # One sample
    # ------------------------------------------------------------------

    async def tick(self):
        """Process one position sample for the current run."""
        nav = self.state.navigation
        run = nav.run
        route = nav.route
        if run is None or route is None or not nav.navigating:
            return
        run_id = run.run_id

        try:
            sample = await self.location.current_position()
        except PermissionDenied as e:
            logger.error(f"Location permission denied: {e}")
            if not self._is_stale(run_id):
                await self.speech.speak_brief(LOCATION_DENIED_MESSAGE)
                await self._notify_stop(False)
            return
        except Exception as e:
            logger.warning(f"Could not get position: {e}")
            return
        if self._is_stale(run_id):
            return

        idx = run.current_step_index
        if idx >= len(route.steps):
            logger.info("Arrived at destination")
            await self._notify_stop(True)
            return

        step = route.steps[idx]
        if idx not in run.spoken_step_indices:
            run.spoken_step_indices.add(idx)
            await self.speech.speak_brief(step.instruction or "Continue")
            if self._is_stale(run_id):
                return

        await self._check_hazards(run, sample)
        if self._is_stale(run_id):
            return

        if step.end_coordinate is not None:
            if self.wrong_way.check(run, sample, step.end_coordinate, self._clock()):
                await self.speech.speak_brief(WRONG_WAY_MESSAGE)
                if self._is_stale(run_id):
                    return

            if distance_between(sample.coord, step.end_coordinate) <= self.config.step_advance_m:
                if run.advance_to(idx + 1):
                    logger.info(f"Advanced to step {idx + 1}/{len(route.steps)}")

        await self._check_off_route(run_id, route, sample)

    async def _check_hazards(self, run: NavigationRunState, sample: PositionSample):
        if self.hazards is None:
            return
        try:
            hazards = await self.hazards.hazards_near(
                sample.lat, sample.lon, self.config.hazard_query_radius_m
            )
        except Exception as e:
            logger.warning(f"Error fetching hazards: {e}")
            return
        if self._is_stale(run.run_id):
            return

        hazard = self.hazard_tracker.next_alert(run, hazards, sample.coord, self._clock())
        if hazard is not None:
            logger.info(f"Hazard detected: {hazard.description} at {hazard.distance_m:.0f}m")
            await self.speech.speak_brief(
                f"Caution: {hazard.description} in {hazard.distance_m:.0f} meters"
            )

    async def _check_off_route(self, run_id: int, route: Route, sample: PositionSample):
        nav = self.state.navigation
        run = nav.run
        nearest = min_distance_to_geometry(sample.coord, route.geometry)
        if nearest <= self.config.off_route_m or run is None or run.destination is None:
            return
        if nav.rerouting:
            return

        nav.rerouting = True
        logger.info(f"Off route by {nearest:.0f} m, recalculating")
        await self.speech.speak_brief(OFF_ROUTE_MESSAGE)
        if self._is_stale(run_id):
            return
        if self._on_off_route is not None:
            await self._on_off_route()

    async def _notify_stop(self, arrived: bool):
        if self._on_stop is not None:
            await self._on_stop(arrived)

    def _is_stale(self, run_id: int) -> bool:
        nav = self.state.navigation
        return nav.run is None or nav.run.run_id != run_id or not nav.navigating
