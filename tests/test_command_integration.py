"""
Integration tests for the command dispatcher.

Drives selection, routing, navigation control, search and free-form
requests against the mock collaborators and checks what was spoken and
which listening mode the session ends in.
"""

import unittest

from cosmo_nav.config.settings import NavigationConfig
from cosmo_nav.core.clock import ManualClock
from cosmo_nav.core.errors import (
    AIRateLimited, NetworkFailure, NoRouteFound, RoutingDenied, RoutingError
)
from cosmo_nav.core.state_manager import ListeningMode, StateManager
from cosmo_nav.hardware.mock_hardware import (
    MockAudioRecorder, MockLLMProvider, MockLocationProvider, MockPlaceSearch,
    MockRouter, MockSpeechOutput, MockTranscriber, MockWeatherService
)
from cosmo_nav.interaction.command_dispatcher import (
    ARRIVED_MESSAGE, BACKUP_MODE_MESSAGE, FOLLOW_UP_MESSAGE, LOCATION_NEEDED_MESSAGE,
    NO_OPTIONS_MESSAGE, NO_ROUTE_MESSAGE, PROMPT_MESSAGE, REROUTE_FAILED_MESSAGE,
    ROUTE_DENIED_MESSAGE, ROUTE_FAILED_MESSAGE, ROUTE_NOT_FOUND_MESSAGE,
    SEARCH_FAILED_MESSAGE, START_MESSAGE, STOPPED_MESSAGE, THINKING_FAILED_MESSAGE,
    UNKNOWN_TRAVEL_MODE_MESSAGE, CommandDispatcher, build_route_announcement, extract_weather_place,
    is_weather_question
)
from cosmo_nav.interaction.command_handlers.help_commands import HELP_TEXT
from cosmo_nav.interaction.option_parser import AMBIGUOUS_MESSAGE
from cosmo_nav.interaction.transcript_router import Intent, RouteDecision
from cosmo_nav.llm.agents import AnswerAgent, IntentAgent
from cosmo_nav.llm.fallback import FallbackChain
from cosmo_nav.llm.rate_limiter import MinIntervalRateLimiter
from cosmo_nav.navigation.models import (
    Candidate, Coord, Route, Step, TransitDetails, TravelMode
)
from cosmo_nav.navigation.monitor import NavigationMonitor
from cosmo_nav.speech.capture_loop import AudioCaptureLoop
from cosmo_nav.speech.listening_mode import ListeningModeController
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator


def make_route(mode=TravelMode.WALKING):
    return Route(
        steps=[
            Step("Head north on 7th Ave", 200, 150, Coord(40.7598, -73.9845)),
            Step("Turn right onto W 47th St", 400, 300, Coord(40.7590, -73.9800)),
        ],
        geometry=[Coord(40.7580, -73.9855), Coord(40.7598, -73.9845), Coord(40.7590, -73.9800)],
        distance_m=1200,
        duration_s=900,
        travel_mode=mode,
    )


CANDIDATES = [
    Candidate("Blue Bottle Coffee", Coord(40.7590, -73.9850)),
    Candidate("Joe Coffee", Coord(40.7600, -73.9860)),
    Candidate("Think Coffee", Coord(40.7610, -73.9870)),
]


class DispatcherTestCase(unittest.IsolatedAsyncioTestCase):
    """Builds a dispatcher wired to mocks."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.state = StateManager()
        self.recorder = MockAudioRecorder()
        self.output = MockSpeechOutput(self.recorder)
        self.speech = SpeechOutputCoordinator(self.output, self.state, restart_delay_sec=0)

        async def on_transcript(text):
            pass

        capture = AudioCaptureLoop(self.recorder, MockTranscriber(), on_transcript, clip_duration_sec=0.01)
        self.listening = ListeningModeController(self.state, capture)
        self.speech.attach_listening(self.listening)

        self.location = MockLocationProvider()
        self.places = MockPlaceSearch()
        self.router = MockRouter([make_route()])
        self.weather = MockWeatherService()
        self.llm = MockLLMProvider()
        self.clock = ManualClock()

        config = NavigationConfig(sample_interval_sec=3600)
        self.monitor = NavigationMonitor(self.state, self.location, None, self.speech, config=config)
        self.dispatcher = self.make_dispatcher(config)
        await self.listening.enter_passive()

    def make_dispatcher(self, config):
        return CommandDispatcher(
            self.state, self.speech, self.listening, self.monitor, self.location,
            self.places, self.router, FallbackChain(None), weather=self.weather, config=config
        )

    async def asyncTearDown(self):
        await self.monitor.shutdown()
        await self.listening.stop()

    @property
    def spoken(self):
        return self.output.spoken


class TestSelection(DispatcherTestCase):
    """Test candidate selection and route computation."""

    async def test_no_options(self):
        """Test selecting before any search."""
        self.assertFalse(await self.dispatcher.select_candidate(0))
        self.assertEqual(self.spoken[-1], NO_OPTIONS_MESSAGE)
        self.assertEqual(self.router.calls, [])

    async def test_out_of_range_keeps_options(self):
        """Test that a bad number keeps the list and reopens the window."""
        self.state.search.candidates = list(CANDIDATES)

        self.assertFalse(await self.dispatcher.select_candidate(8))

        self.assertEqual(self.spoken[-1], "Please choose a number between one and 3.")
        self.assertEqual(len(self.state.search.candidates), 3)
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertEqual(self.router.calls, [])

    async def test_negative_index(self):
        """Test that 'option 0' is out of range."""
        self.state.search.candidates = list(CANDIDATES)
        self.assertFalse(await self.dispatcher.select_candidate(-1))
        self.assertEqual(self.router.calls, [])

    async def test_valid_selection_computes_route(self):
        """Test that a valid selection announces the route and opens the window."""
        self.state.search.candidates = list(CANDIDATES)

        self.assertTrue(await self.dispatcher.select_candidate(1))

        nav = self.state.navigation
        self.assertIsNotNone(nav.route)
        self.assertEqual(nav.destination.label, "Joe Coffee")
        self.assertEqual(self.state.search.candidates, [])
        self.assertEqual(self.router.calls[0]["destination"], Coord(40.7600, -73.9860))
        self.assertTrue(self.spoken[-1].startswith("Route calculated using walking. 1.2 kilometers, about 15 minutes."))
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertFalse(nav.navigating)

    async def test_route_denied(self):
        """Test a rejected directions request."""
        self.router.routes = [RoutingDenied("REQUEST_DENIED")]
        self.state.search.candidates = list(CANDIDATES)

        await self.dispatcher.select_candidate(0)

        self.assertEqual(self.spoken[-1], ROUTE_DENIED_MESSAGE)
        self.assertIsNone(self.state.navigation.route)

    async def test_no_route_found(self):
        """Test ZERO_RESULTS and empty routes."""
        self.router.routes = [NoRouteFound("ZERO_RESULTS")]
        self.assertFalse(await self.dispatcher.compute_route(CANDIDATES[0]))
        self.assertEqual(self.spoken[-1], ROUTE_NOT_FOUND_MESSAGE)

        self.router.routes = [Route()]
        self.assertFalse(await self.dispatcher.compute_route(CANDIDATES[0]))
        self.assertEqual(self.spoken[-1], ROUTE_NOT_FOUND_MESSAGE)

    async def test_route_unexpected_error(self):
        """Test that an unexpected router error is announced."""
        self.router.routes = [RuntimeError("socket closed")]
        self.assertFalse(await self.dispatcher.compute_route(CANDIDATES[0]))
        self.assertEqual(self.spoken[-1], ROUTE_FAILED_MESSAGE)
        self.assertIsNone(self.state.navigation.route)

    async def test_route_network_failure(self):
        """Test a failed directions call."""
        self.router.routes = [NetworkFailure("directions")]
        self.assertFalse(await self.dispatcher.compute_route(CANDIDATES[0]))
        self.assertEqual(self.spoken[-1], ROUTE_FAILED_MESSAGE)

    async def test_location_denied(self):
        """Test routing without location permission."""
        self.location.denied = True
        self.assertFalse(await self.dispatcher.compute_route(CANDIDATES[0]))
        self.assertEqual(self.spoken[-1], LOCATION_NEEDED_MESSAGE)

    async def test_ambiguous_selection(self):
        """Test the corrective message for two numbers."""
        self.state.search.candidates = list(CANDIDATES)

        await self.dispatcher.dispatch(RouteDecision(Intent.SELECT_OPTION, ambiguous=True))

        self.assertEqual(self.spoken[-1], AMBIGUOUS_MESSAGE)
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertEqual(self.router.calls, [])


class TestNavigationControl(DispatcherTestCase):
    """Test start, stop, repeat and travel mode."""

    async def test_start_without_route(self):
        """Test start before a route is ready."""
        self.assertFalse(await self.dispatcher.start_navigation())
        self.assertEqual(self.spoken[-1], NO_ROUTE_MESSAGE)
        self.assertFalse(self.monitor.is_running)

    async def test_start_and_start_again(self):
        """Test that a second start is a no-op."""
        self.state.navigation.route = make_route()

        self.assertTrue(await self.dispatcher.start_navigation())
        self.assertEqual(self.spoken[-1], START_MESSAGE)
        self.assertTrue(self.state.navigation.navigating)
        self.assertTrue(self.monitor.is_running)

        count = len(self.spoken)
        self.assertFalse(await self.dispatcher.start_navigation())
        self.assertEqual(len(self.spoken), count)

    async def test_stop_is_idempotent(self):
        """Test that only the first stop acts and speaks."""
        self.state.navigation.route = make_route()
        await self.dispatcher.start_navigation()

        self.assertTrue(await self.dispatcher.stop_navigation())
        self.assertFalse(await self.dispatcher.stop_navigation())

        self.assertEqual(self.spoken.count(STOPPED_MESSAGE), 1)
        self.assertFalse(self.state.navigation.navigating)
        self.assertIsNone(self.state.navigation.route)
        self.assertIsNone(self.state.navigation.run)
        self.assertFalse(self.monitor.is_running)
        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)

    async def test_arrival_message(self):
        """Test the arrival announcement."""
        self.state.navigation.route = make_route()
        await self.dispatcher.start_navigation()

        await self.dispatcher.stop_navigation(reached_destination=True)
        self.assertEqual(self.spoken[-1], ARRIVED_MESSAGE)

    async def test_stop_intent(self):
        """Test the stop intent through dispatch."""
        self.state.navigation.route = make_route()
        await self.dispatcher.start_navigation()

        await self.dispatcher.dispatch(RouteDecision(Intent.STOP_NAVIGATION))
        self.assertFalse(self.state.navigation.navigating)

    async def test_repeat_instruction(self):
        """Test repeating the current step."""
        self.assertFalse(await self.dispatcher.repeat_instruction())

        self.state.navigation.route = make_route()
        await self.dispatcher.start_navigation()

        self.assertTrue(await self.dispatcher.repeat_instruction())
        self.assertEqual(self.spoken[-1], "Head north on 7th Ave")

    async def test_switch_travel_mode(self):
        """Test that the next route uses the new mode."""
        await self.dispatcher.dispatch(
            RouteDecision(Intent.SWITCH_TRAVEL_MODE, travel_mode=TravelMode.TRANSIT)
        )

        self.assertEqual(self.state.navigation.travel_mode, TravelMode.TRANSIT)
        self.assertIn("public transit mode", self.spoken[-1])

        await self.dispatcher.compute_route(CANDIDATES[0])
        self.assertEqual(self.router.calls[-1]["mode"], TravelMode.TRANSIT)

    async def test_unknown_travel_mode(self):
        """Test that an unknown mode is refused without changing the mode."""
        mode = await self.dispatcher.switch_travel_mode("flying")

        self.assertEqual(mode, TravelMode.WALKING)
        self.assertEqual(self.state.navigation.travel_mode, TravelMode.WALKING)
        self.assertEqual(self.spoken[-1], UNKNOWN_TRAVEL_MODE_MESSAGE)

    async def test_prompt_enters_active(self):
        """Test the bare wake phrase."""
        await self.dispatcher.dispatch(RouteDecision(Intent.PROMPT))

        self.assertEqual(self.spoken[-1], PROMPT_MESSAGE)
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)

    async def test_ignore_does_nothing(self):
        """Test that ignored transcripts are silent."""
        await self.dispatcher.dispatch(RouteDecision(Intent.IGNORE))
        self.assertEqual(self.spoken, [])


class TestRerouting(DispatcherTestCase):
    """Test recalculation after leaving the route."""

    async def start(self):
        self.state.navigation.route = make_route()
        self.state.navigation.destination = CANDIDATES[0]
        await self.dispatcher.start_navigation()
        self.state.navigation.rerouting = True

    async def test_reroute_restarts_monitor(self):
        """Test that a new route starts a new run."""
        await self.start()
        old_run = self.state.navigation.run.run_id
        new_route = make_route()
        self.router.routes = [new_route]

        await self.dispatcher.recalculate_route()

        nav = self.state.navigation
        self.assertIs(nav.route, new_route)
        self.assertGreater(nav.run.run_id, old_run)
        self.assertEqual(nav.run.destination, CANDIDATES[0])
        self.assertFalse(nav.rerouting)
        self.assertTrue(self.monitor.is_running)

    async def test_reroute_failure_stops_navigation(self):
        """Test that a failed reroute ends navigation."""
        await self.start()
        self.router.routes = [RoutingError("down")]

        await self.dispatcher.recalculate_route()

        self.assertEqual(self.spoken[-1], REROUTE_FAILED_MESSAGE)
        self.assertFalse(self.state.navigation.navigating)
        self.assertFalse(self.state.navigation.rerouting)

    async def test_reroute_unexpected_error_stops_navigation(self):
        """Test that an unexpected router error during re-routing ends navigation."""
        await self.start()
        self.router.routes = [RuntimeError("socket closed")]

        await self.dispatcher.recalculate_route()

        nav = self.state.navigation
        self.assertEqual(self.spoken[-1], REROUTE_FAILED_MESSAGE)
        self.assertFalse(nav.navigating)
        self.assertFalse(nav.rerouting)
        self.assertFalse(self.monitor.is_running)

    async def test_reroute_when_not_navigating(self):
        """Test that a late reroute request is dropped."""
        self.state.navigation.rerouting = True

        await self.dispatcher.recalculate_route()

        self.assertFalse(self.state.navigation.rerouting)
        self.assertEqual(self.router.calls, [])


class TestSearch(DispatcherTestCase):
    """Test destination search."""

    async def test_search_announces_options(self):
        """Test that results are stored and the top ones announced."""
        self.places.results = list(CANDIDATES)

        count = await self.dispatcher.search("coffee")

        self.assertEqual(count, 3)
        self.assertEqual(self.state.search.last_query, "coffee")
        self.assertTrue(self.spoken[-1].startswith("Found 3 results. Option 1:"))
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)

    async def test_search_without_location(self):
        """Test search with location denied."""
        self.location.denied = True

        self.assertEqual(await self.dispatcher.search("coffee"), 0)
        self.assertEqual(self.spoken[-1], LOCATION_NEEDED_MESSAGE)
        self.assertEqual(self.places.calls, [])

    async def test_search_no_results(self):
        """Test an empty result list."""
        self.assertEqual(await self.dispatcher.search("zebra museum"), 0)
        self.assertEqual(self.spoken[-1], "I couldn't find any places matching zebra museum.")

    async def test_search_failure(self):
        """Test a failed search request."""
        self.places.error = NetworkFailure("places")
        self.assertEqual(await self.dispatcher.search("coffee"), 0)
        self.assertEqual(self.spoken[-1], SEARCH_FAILED_MESSAGE)


class TestFreeForm(DispatcherTestCase):
    """Test direct handlers and the fallback chain."""

    async def test_help(self):
        """Test the help handler."""
        result = await self.dispatcher.handle_free_form("what can you do")

        self.assertEqual(result["handler"], "HelpCommandHandler")
        self.assertEqual(self.spoken[-1], HELP_TEXT)

    async def test_stop_navigation_when_idle(self):
        """Test the navigation handler without navigation."""
        result = await self.dispatcher.handle_free_form("stop navigation")

        self.assertEqual(result["handler"], "NavigationCommandHandler")
        self.assertEqual(self.spoken[-1], "Navigation is not active")

    async def test_repeat_options(self):
        """Test the options handler."""
        self.state.search.candidates = list(CANDIDATES)

        result = await self.dispatcher.handle_free_form("repeat options")

        self.assertEqual(result["handler"], "OptionsCommandHandler")
        self.assertTrue(self.spoken[-1].startswith("Here are the options: Option 1: Blue Bottle Coffee"))
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)

    async def test_keyword_search(self):
        """Test a destination routed by keywords."""
        self.places.results = list(CANDIDATES)

        result = await self.dispatcher.handle_free_form("find coffee")

        self.assertEqual(result["action"], "search")
        self.assertEqual(self.places.calls[0]["query"], "find coffee")

    async def test_rate_limited_announces_backup_mode(self):
        """Test that degraded routing is announced before searching."""
        limiter = MinIntervalRateLimiter(2.0, clock=self.clock, sleep=self.clock.sleep)
        self.dispatcher.fallback = FallbackChain(IntentAgent(self.llm, limiter, sleep=self.clock.sleep))
        self.llm.responses = [AIRateLimited("429")] * 3
        self.places.results = list(CANDIDATES)

        await self.dispatcher.handle_free_form("coffee shop")

        self.assertIn(BACKUP_MODE_MESSAGE, self.spoken)
        self.assertLess(self.spoken.index(BACKUP_MODE_MESSAGE), len(self.spoken) - 1)
        self.assertEqual(self.places.calls[0]["query"], "coffee shop")
        self.assertTrue(self.spoken[-1].startswith("Found 3 results."))

    async def test_ai_navigation_uses_location(self):
        """Test that the AI's location is searched."""
        limiter = MinIntervalRateLimiter(2.0, clock=self.clock, sleep=self.clock.sleep)
        self.dispatcher.fallback = FallbackChain(IntentAgent(self.llm, limiter, sleep=self.clock.sleep))
        self.llm.responses = ['{"action": "navigate", "location": "Starbucks"}']

        await self.dispatcher.handle_free_form("i need some caffeine")

        self.assertEqual(self.places.calls[0]["query"], "Starbucks")
        self.assertNotIn(BACKUP_MODE_MESSAGE, self.spoken)

    async def test_weather_question(self):
        """Test that weather questions use the weather service."""
        await self.dispatcher.handle_free_form("what is the weather in paris")

        self.assertEqual(self.weather.calls[0]["place"], "Paris")
        self.assertEqual(self.spoken[-2], self.weather.report)
        self.assertEqual(self.spoken[-1], FOLLOW_UP_MESSAGE)
        self.assertEqual(len(self.state.interaction.chat_history), 2)

    async def test_weather_near_user(self):
        """Test weather without a named place."""
        await self.dispatcher.answer_question("how cold is it")
        self.assertIsNone(self.weather.calls[0]["place"])
        self.assertEqual(self.weather.calls[0]["near"], Coord(40.7580, -73.9855))

    async def test_answer_agent(self):
        """Test a general question answered by the LLM."""
        self.llm.responses = ["Paris is the capital of France."]
        self.dispatcher.answer_agent = AnswerAgent(self.llm)

        self.assertTrue(await self.dispatcher.answer_question("what is the capital of france"))
        self.assertEqual(self.spoken[-2], "Paris is the capital of France.")

    async def test_answer_failure(self):
        """Test the apology when nothing can answer."""
        self.assertFalse(await self.dispatcher.answer_question("why is the sky blue"))
        self.assertEqual(self.spoken[-1], THINKING_FAILED_MESSAGE)
        self.assertEqual(len(self.state.interaction.chat_history), 0)


class TestHelpers(unittest.TestCase):
    """Test announcement and weather helpers."""

    def test_route_announcement_transit(self):
        """Test that transit vehicles are listed."""
        route = Route(
            steps=[
                Step("Walk to stop"),
                Step("Bus towards Downtown", travel_mode="transit",
                     transit_details=TransitDetails(vehicle_type="Bus", line_name="12")),
                Step("Subway towards Uptown", travel_mode="transit",
                     transit_details=TransitDetails(vehicle_type="Subway", line_name="A")),
            ],
            distance_m=5400,
            duration_s=1500,
            travel_mode=TravelMode.TRANSIT,
        )

        text = build_route_announcement(route)

        self.assertTrue(text.startswith("Route calculated using public transit. 5.4 kilometers, about 25 minutes."))
        self.assertIn("You will take 2 transit vehicles: bus 12, then subway A.", text)
        self.assertTrue(text.endswith("say Hey Cosmo, start navigation."))

    def test_weather_helpers(self):
        """Test weather question detection and place extraction."""
        self.assertTrue(is_weather_question("will it rain today"))
        self.assertFalse(is_weather_question("find a brainy bookstore"))
        self.assertEqual(extract_weather_place("weather in new york"), "New York")
        self.assertIsNone(extract_weather_place("what is the weather"))


if __name__ == '__main__':
    unittest.main()
