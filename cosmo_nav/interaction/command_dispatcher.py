"""
Command Dispatcher.

Executes routing decisions: candidate selection, route computation,
navigation start/stop, instruction repeat, travel mode switching, search and
free-form requests. Every outcome, including failures, is announced through
the speech coordinator so the listening state machine always resumes.
"""

import logging
import re
from typing import Any, Dict, Optional

from cosmo_nav.config.settings import NavigationConfig
from cosmo_nav.core.errors import (
    NetworkFailure, NoRouteFound, PermissionDenied, RoutingDenied, RoutingError
)
from cosmo_nav.core.state_manager import StateManager
from cosmo_nav.hardware.interfaces import (
    ILocationProvider, IPlaceSearch, IRouter, IWeatherService
)
from cosmo_nav.interaction.command_processor import CommandProcessor, create_default_processor
from cosmo_nav.interaction.option_parser import AMBIGUOUS_MESSAGE
from cosmo_nav.interaction.transcript_router import Intent, RouteDecision
from cosmo_nav.llm.agents import ANSWER, AnswerAgent
from cosmo_nav.llm.fallback import QUESTION, FallbackChain
from cosmo_nav.navigation.models import Candidate, Coord, Route, TravelMode
from cosmo_nav.navigation.monitor import NavigationMonitor
from cosmo_nav.navigation.search import (
    build_options_listing, build_search_announcement, rank_candidates
)
from cosmo_nav.speech.listening_mode import ListeningModeController
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator

logger = logging.getLogger(__name__)

PROMPT_MESSAGE = "Yes? How can I help?"
NO_OPTIONS_MESSAGE = "There are no options to choose from yet."
NO_ROUTE_MESSAGE = "No route is ready yet. Please choose a destination first."
START_MESSAGE = (
    "Starting navigation. I will warn you about crosswalks and hazards. "
    "Say Hey Cosmo, stop navigation at any time."
)
STOPPED_MESSAGE = "Navigation stopped"
ARRIVED_MESSAGE = "You have arrived at your destination"
ROUTE_DENIED_MESSAGE = "Please check your Google Maps API key and ensure Directions API is enabled."
ROUTE_NOT_FOUND_MESSAGE = "No route found. Try another destination."
ROUTE_FAILED_MESSAGE = "I couldn't calculate a route right now. Please try again."
REROUTE_FAILED_MESSAGE = "I couldn't find a new route. Stopping navigation."
LOCATION_NEEDED_MESSAGE = "Location access is needed. Please enable location services."
SEARCH_FAILED_MESSAGE = "Sorry, the place search is not available right now."
BACKUP_MODE_MESSAGE = "I'm experiencing high demand. Using backup mode."
THINKING_FAILED_MESSAGE = "Sorry, I'm having trouble thinking right now."
FOLLOW_UP_MESSAGE = "Say Hey Cosmo if you need anything else."

TRAVEL_MODE_MESSAGES = {
    TravelMode.WALKING: "Switched to walking mode. I will now provide walking directions.",
    TravelMode.TRANSIT: "Switched to public transit mode. I will now provide directions using buses and trains.",
}
UNKNOWN_TRAVEL_MODE_MESSAGE = "I can give walking or public transit directions."

WEATHER_KEYWORDS = ['weather', 'temperature', 'forecast', 'hot', 'cold', 'rain', 'sunny', 'climate']
WEATHER_PLACE_PATTERN = re.compile(r"\bin\s+([a-zA-Z\s]+)")


def build_route_announcement(route: Route) -> str:
    """
    Spoken summary of a freshly computed route.

    Example:
        "Route calculated using walking. 1.2 kilometers, about 15 minutes."
    """
    text = (
        f"Route calculated using {route.travel_mode.spoken_name}. "
        f"{route.distance_m / 1000:.1f} kilometers, about {round(route.duration_s / 60)} minutes."
    )
    transit = route.transit_steps
    if route.travel_mode is TravelMode.TRANSIT and transit:
        vehicles = []
        for step in transit:
            details = step.transit_details
            vehicles.append(f"{details.vehicle_type.lower() or 'vehicle'} {details.line_name or 'transit'}")
        plural = "" if len(transit) == 1 else "s"
        text += f" You will take {len(transit)} transit vehicle{plural}: {', then '.join(vehicles)}."
    text += " Just say start to begin navigation, or say Hey Cosmo, start navigation."
    return text


def is_weather_question(text: str) -> bool:
    lowered = text.lower()
    return any(re.search(rf"\b{kw}\b", lowered) for kw in WEATHER_KEYWORDS)


def extract_weather_place(text: str) -> Optional[str]:
    """Place named after "in", e.g. "weather in Paris" -> "Paris"."""
    match = WEATHER_PLACE_PATTERN.search(text)
    if not match:
        return None
    place = match.group(1).strip()
    return place.title() or None


class CommandDispatcher:
    """
    Executes intents against the session.

    The dispatcher is the only component that starts and stops the
    navigation monitor. The monitor reports arrival, fatal errors and
    off-route events back through the callbacks bound in ``__init__``.
    """

    def __init__(
        self,
        state: StateManager,
        speech: SpeechOutputCoordinator,
        listening: ListeningModeController,
        monitor: NavigationMonitor,
        location: ILocationProvider,
        place_search: IPlaceSearch,
        router: IRouter,
        fallback: FallbackChain,
        answer_agent: Optional[AnswerAgent] = None,
        weather: Optional[IWeatherService] = None,
        config: Optional[NavigationConfig] = None,
        processor: Optional[CommandProcessor] = None
    ):
        """
        Initialize dispatcher.

        Args:
            state: Shared state manager
            speech: Speech coordinator
            listening: Listening mode controller
            monitor: Navigation monitor
            location: Position source
            place_search: Place search service
            router: Directions service
            fallback: AI-then-keyword intent chain
            answer_agent: Agent for general questions (None to apologize instead)
            weather: Weather service for weather questions
            config: Navigation configuration
            processor: Direct command processor (default handlers if None)
        """
        self.state = state
        self.speech = speech
        self.listening = listening
        self.monitor = monitor
        self.location = location
        self.place_search = place_search
        self.router = router
        self.fallback = fallback
        self.answer_agent = answer_agent
        self.weather = weather
        self.config = config or NavigationConfig()
        self.processor = processor or create_default_processor(state, self)

        self.monitor.bind(on_stop=self._on_monitor_stop, on_off_route=self.recalculate_route)

    # ------------------------------------------------------------------
    # Routing decisions
    # ------------------------------------------------------------------

    async def dispatch(self, decision: RouteDecision):
        """
        Execute a routing decision.

        Args:
            decision: Decision from the transcript router
        """
        intent = decision.intent

        if intent in (Intent.IGNORE, Intent.CONTINUE_LISTENING):
            return
        if intent is Intent.PROMPT:
            await self.speech.speak(PROMPT_MESSAGE, restart_listening=False)
            await self.listening.enter_active()
            return
        if intent is Intent.STOP_NAVIGATION:
            await self.stop_navigation()
            return
        if intent is Intent.SELECT_OPTION:
            if decision.ambiguous:
                await self._correct(AMBIGUOUS_MESSAGE)
                return
            await self.select_candidate(decision.option_index)
            return

        self.listening.end_active()
        if intent is Intent.REPEAT_INSTRUCTION:
            await self.repeat_instruction()
        elif intent is Intent.START_NAVIGATION:
            await self.start_navigation()
        elif intent is Intent.SWITCH_TRAVEL_MODE:
            await self.switch_travel_mode(decision.travel_mode)
        elif intent is Intent.NEEDS_AI:
            await self.handle_free_form(decision.command)

    async def _correct(self, message: str):
        """Speak a corrective message and keep the selection window open."""
        await self.speech.interrupt()
        if self.state.search.candidates:
            await self.speech.speak(message, restart_listening=False)
            await self.listening.enter_active()
        else:
            await self.speech.speak(message)

    # ------------------------------------------------------------------
    # Selection and routing
    # ------------------------------------------------------------------

    async def select_candidate(self, index: int) -> bool:
        """
        Select a search result by 0-based index and compute its route.

        Args:
            index: Candidate index

        Returns:
            bool: True if the index was valid
        """
        candidates = self.state.search.candidates
        if not candidates:
            await self.speech.interrupt()
            await self.speech.speak(NO_OPTIONS_MESSAGE)
            return False

        if index is None or not 0 <= index < len(candidates):
            logger.info(f"Option index {index} out of range (0-{len(candidates) - 1})")
            option_count = min(len(candidates), 10)
            await self._correct(f"Please choose a number between one and {option_count}.")
            return False

        selected = candidates[index]
        logger.info(f"Selecting option {index + 1}: {selected.label}")
        self.listening.end_active()
        await self.speech.interrupt()
        await self.compute_route(selected)
        return True

    async def compute_route(self, destination: Candidate) -> bool:
        """
        Compute and announce a route from the current position.

        Args:
            destination: Selected candidate

        Returns:
            bool: True if a route was stored
        """
        nav = self.state.navigation
        self.state.search.clear()
        nav.destination = destination

        try:
            origin = await self._current_coord()
        except PermissionDenied:
            await self.speech.speak(LOCATION_NEEDED_MESSAGE)
            return False

        route = await self._request_route(origin, destination.coordinates, nav.travel_mode)
        if route is None:
            return False

        nav.route = route
        logger.info(f"Route to {destination.label}: {len(route.steps)} steps, {route.distance_m:.0f} m")
        await self.speech.speak(build_route_announcement(route), restart_listening=False)
        await self.listening.enter_active()
        return True

    async def _request_route(self, origin: Coord, destination: Coord, mode: TravelMode) -> Optional[Route]:
        """Call the router, announcing any failure. Returns None on failure."""
        try:
            route = await self.router.route(origin, destination, mode)
        except RoutingDenied as e:
            logger.error(f"Directions request denied: {e}")
            await self.speech.speak(ROUTE_DENIED_MESSAGE)
            return None
        except NoRouteFound as e:
            logger.warning(f"No route found: {e}")
            await self.speech.speak(ROUTE_NOT_FOUND_MESSAGE)
            return None
        except (NetworkFailure, RoutingError) as e:
            logger.error(f"Route request failed: {e}")
            await self.speech.speak(ROUTE_FAILED_MESSAGE)
            return None
        except Exception as e:
            logger.exception(f"Unexpected router error: {e}")
            await self.speech.speak(ROUTE_FAILED_MESSAGE)
            return None

        if not route.has_steps:
            await self.speech.speak(ROUTE_NOT_FOUND_MESSAGE)
            return None
        return route

    async def recalculate_route(self):
        """
        Re-route to the current destination after leaving the route.

        Called by the monitor with the rerouting guard already set. On
        success the monitor restarts on the new route; on failure
        navigation stops.
        """
        nav = self.state.navigation
        destination = nav.run.destination if nav.run is not None else nav.destination
        if destination is None or not nav.navigating:
            nav.rerouting = False
            return
        self.monitor.stop()

        try:
            origin = await self._current_coord()
            route = await self.router.route(origin, destination.coordinates, nav.travel_mode)
        except (PermissionDenied, NetworkFailure, RoutingError) as e:
            logger.error(f"Re-route failed: {e}")
            route = None
        except Exception as e:
            logger.exception(f"Unexpected re-route error: {e}")
            route = None

        if not nav.navigating:
            logger.info("Navigation ended while re-routing, discarding new route")
            return

        if route is None or not route.has_steps:
            nav.rerouting = False
            await self.stop_navigation(message=REROUTE_FAILED_MESSAGE)
            return

        logger.info(f"Re-routed: {len(route.steps)} steps")
        self.monitor.start(route, destination)

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    async def start_navigation(self) -> bool:
        """
        Begin guidance on the current route.

        Returns:
            bool: True if navigation started
        """
        nav = self.state.navigation
        if nav.navigating:
            logger.info("Navigation already active")
            return False
        if nav.route is None or not nav.route.has_steps:
            await self.speech.speak(NO_ROUTE_MESSAGE)
            return False

        nav.navigating = True
        self.listening.end_active()
        self.state.search.clear()
        await self.speech.speak(START_MESSAGE)

        # Stopped while the start message was playing
        if not nav.navigating or nav.route is None:
            return False
        self.monitor.start(nav.route, nav.destination)
        return True

    async def stop_navigation(self, reached_destination: bool = False, message: Optional[str] = None) -> bool:
        """
        End navigation. Safe to call repeatedly; only the first call acts.

        Args:
            reached_destination: Announce arrival instead of a plain stop
            message: Override the spoken message

        Returns:
            bool: True if navigation was active and is now stopped
        """
        if not self.state.navigation.navigating:
            return False

        self.state.navigation.navigating = False
        self.monitor.stop()
        self.state.clear_navigation()
        self.listening.end_active()
        await self.speech.interrupt()

        if message is None:
            message = ARRIVED_MESSAGE if reached_destination else STOPPED_MESSAGE
        logger.info(f"Navigation ended: {message}")
        await self.speech.speak(message, restart_listening=True)
        return True

    async def _on_monitor_stop(self, arrived: bool):
        await self.stop_navigation(reached_destination=arrived)

    async def repeat_instruction(self) -> bool:
        """
        Re-speak the current instruction.

        Returns:
            bool: True if navigating
        """
        nav = self.state.navigation
        if not nav.navigating:
            return False
        step = nav.current_step
        await self.speech.speak_brief(step.instruction if step and step.instruction else "Continue")
        return True

    async def switch_travel_mode(self, mode) -> TravelMode:
        """
        Change the travel mode used for the next route.

        Args:
            mode: "walking" or "transit"

        Returns:
            TravelMode: The new mode (unchanged if ``mode`` is not recognized)
        """
        try:
            new_mode = TravelMode(mode)
        except ValueError:
            logger.warning(f"Unknown travel mode: {mode!r}")
            await self.speech.speak(UNKNOWN_TRAVEL_MODE_MESSAGE)
            return self.state.navigation.travel_mode
        self.state.navigation.travel_mode = new_mode
        logger.info(f"Travel mode: {new_mode.value}")
        await self.speech.speak(TRAVEL_MODE_MESSAGES[new_mode])
        return new_mode

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: str) -> int:
        """
        Search for a destination and announce the top results.

        Args:
            query: Place query

        Returns:
            int: Number of candidates stored
        """
        query = query.strip()
        try:
            origin = await self._current_coord()
        except PermissionDenied:
            await self.speech.speak(LOCATION_NEEDED_MESSAGE)
            return 0

        await self.speech.interrupt()
        logger.info(f"Searching for: {query}")
        try:
            results = await self.place_search.search(query, origin)
        except NetworkFailure as e:
            logger.error(f"Search failed: {e}")
            await self.speech.speak(SEARCH_FAILED_MESSAGE)
            return 0

        candidates = rank_candidates(results, query, origin, limit=self.config.max_candidates)
        self.state.search.candidates = candidates
        self.state.search.last_query = query

        if not candidates:
            await self.speech.speak(f"I couldn't find any places matching {query}.")
            return 0

        announcement = build_search_announcement(candidates, self.config.announced_candidates)
        await self.speech.speak(announcement, restart_listening=False)
        await self.listening.enter_active()
        return len(candidates)

    async def repeat_options(self) -> bool:
        """Read the current options again and reopen the selection window."""
        candidates = self.state.search.candidates
        listing = build_options_listing(candidates, self.config.listed_candidates)
        if not candidates:
            await self.speech.speak(listing)
            return False
        await self.speech.speak(listing, restart_listening=False)
        await self.listening.enter_active()
        return True

    # ------------------------------------------------------------------
    # Free-form requests
    # ------------------------------------------------------------------

    async def handle_free_form(self, text: str) -> Dict[str, Any]:
        """
        Handle a request no routing rule claimed.

        Direct command handlers get the first look; anything else goes to
        the AI-then-keyword chain and becomes a search or a question.

        Args:
            text: Request text

        Returns:
            Dict describing what was done
        """
        result = await self.processor.process_command(text)
        if result["action"] == "empty":
            return result
        if result["handler"] != "none":
            if not result.get("spoken"):
                await self.speech.speak(result["message"])
            return result

        decision = await self.fallback.resolve(text)
        logger.info(f"Intent: {decision.action} (source: {decision.source})")
        if decision.fallback_reason == "rate_limited":
            await self.speech.speak(BACKUP_MODE_MESSAGE, restart_listening=False)

        if decision.is_navigation:
            count = await self.search(decision.location or text)
            return {"success": count > 0, "action": "search", "message": decision.location or text,
                    "handler": "FallbackChain"}

        if decision.action in (ANSWER, QUESTION):
            answered = await self.answer_question(text)
            return {"success": answered, "action": "answer", "message": text, "handler": "FallbackChain"}

        return {"success": False, "action": decision.action, "message": text, "handler": "FallbackChain"}

    async def answer_question(self, question: str) -> bool:
        """
        Answer a general or weather question.

        Args:
            question: Question text

        Returns:
            bool: True if an answer was spoken
        """
        interaction = self.state.interaction
        history = list(interaction.chat_history)

        try:
            if self.weather is not None and is_weather_question(question):
                answer = await self._weather_report(question)
            elif self.answer_agent is not None:
                answer = await self.answer_agent.answer(question, history)
            else:
                answer = None
        except Exception as e:
            logger.error(f"Answering failed: {e}")
            answer = None

        if not answer:
            await self.speech.speak(THINKING_FAILED_MESSAGE)
            return False

        interaction.add_chat_turn("user", question)
        interaction.add_chat_turn("assistant", answer)
        await self.speech.speak(answer, restart_listening=False)
        await self.speech.speak(FOLLOW_UP_MESSAGE)
        return True

    async def _weather_report(self, question: str) -> str:
        place = extract_weather_place(question)
        near = None
        if place is None:
            try:
                near = await self._current_coord()
            except PermissionDenied:
                logger.info("No location for weather, using default place")
        return await self.weather.current_conditions(place=place, near=near)

    async def _current_coord(self) -> Coord:
        sample = await self.location.current_position()
        return sample.coord
