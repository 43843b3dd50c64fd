#!/usr/bin/env python3
"""
Cosmo Main Entry Point.

Wires the voice state machine, the command dispatcher and the navigation
monitor into one assistant and runs it against real services.
"""

import argparse
import asyncio
import logging
import signal
import time
from typing import Awaitable, Callable, Dict, List, Optional

from cosmo_nav import __version__
from cosmo_nav.config.settings import CosmoConfig
from cosmo_nav.core.errors import (
    NetworkFailure, PermissionDenied, RecordingConflict, TranscriptionFailure
)
from cosmo_nav.core.state_manager import ListeningMode, StateManager
from cosmo_nav.hardware.interfaces import (
    IAudioRecorder, IHazardSource, ILLMProvider, ILocationProvider, IPlaceSearch,
    IRouter, ISpeechOutput, ITranscriber, IWeatherService
)
from cosmo_nav.interaction.command_dispatcher import CommandDispatcher
from cosmo_nav.interaction.transcript_router import TranscriptRouter
from cosmo_nav.llm.agents import AnswerAgent, IntentAgent
from cosmo_nav.llm.fallback import FallbackChain
from cosmo_nav.llm.rate_limiter import MinIntervalRateLimiter
from cosmo_nav.navigation.models import Candidate, PositionSample
from cosmo_nav.navigation.monitor import NavigationMonitor
from cosmo_nav.speech.capture_loop import AudioCaptureLoop
from cosmo_nav.speech.command_recorder import CommandRecorder
from cosmo_nav.speech.listening_mode import ListeningModeController
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator
from cosmo_nav.speech.wake_phrase import WakePhraseMatcher

logger = logging.getLogger(__name__)

MICROPHONE_DENIED_MESSAGE = "Microphone access is needed for voice commands."
NOT_UNDERSTOOD_MESSAGE = "Sorry, I didn't understand that. Please try again."

# Times Square, used when no track file is given
DEFAULT_POSITION = PositionSample(lat=40.7580, lon=-73.9855)


class CosmoAssistant:
    """
    Hands-free navigation assistant.

    Owns the session state and every core component. Collaborators are
    injected, so the same assistant runs against real services (see
    ``build_assistant``) or against the mocks in ``hardware.mock_hardware``.

    Example:
        >>> assistant = CosmoAssistant(config, recorder, transcriber, tts,
        ...                            location, places, router)
        >>> await assistant.start()
        >>> await assistant.search("coffee shop")
    """

    def __init__(
        self,
        config: CosmoConfig,
        recorder: IAudioRecorder,
        transcriber: ITranscriber,
        speech_output: ISpeechOutput,
        location: ILocationProvider,
        place_search: IPlaceSearch,
        router: IRouter,
        hazards: Optional[IHazardSource] = None,
        weather: Optional[IWeatherService] = None,
        llm: Optional[ILLMProvider] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize assistant.

        Args:
            config: Cosmo configuration
            recorder: Microphone
            transcriber: Speech-to-text service
            speech_output: Text-to-speech playback
            location: Position source
            place_search: Place search service
            router: Directions service
            hazards: Hazard data (None disables hazard alerts)
            weather: Weather service for weather questions
            llm: Generative backend (None uses keyword routing only)
            clock: Monotonic time source
            sleep: Sleep coroutine function
        """
        self.config = config
        self.state = StateManager(config.navigation.default_travel_mode)
        self.recorder = recorder
        self.transcriber = transcriber
        listen_cfg = config.listening

        self.speech = SpeechOutputCoordinator(
            speech_output, self.state, restart_delay_sec=listen_cfg.restart_delay_sec, sleep=sleep
        )
        self.capture = AudioCaptureLoop(
            recorder,
            transcriber,
            on_transcript=self._on_transcript,
            on_error=self._on_capture_error,
            clip_duration_sec=listen_cfg.clip_duration_sec,
            conflict_backoff_sec=listen_cfg.conflict_backoff_sec,
            error_backoff_sec=listen_cfg.error_backoff_sec,
        )
        self.listening = ListeningModeController(
            self.state, self.capture, active_window_sec=listen_cfg.active_window_sec, clock=clock
        )
        self.speech.attach_listening(self.listening)
        self.command_recorder = CommandRecorder(recorder, listen_cfg, clock=clock, sleep=sleep)

        self.monitor = NavigationMonitor(
            self.state, location, hazards, self.speech, config.navigation, clock=clock, sleep=sleep
        )

        intent_agent = None
        answer_agent = None
        if llm is not None:
            limiter = MinIntervalRateLimiter(config.llm.min_call_interval_sec, clock=clock, sleep=sleep)
            intent_agent = IntentAgent(llm, limiter, config.llm, sleep=sleep)
            answer_agent = AnswerAgent(llm, limiter, config.llm)
        self.fallback = FallbackChain(intent_agent)

        self.dispatcher = CommandDispatcher(
            self.state,
            self.speech,
            self.listening,
            self.monitor,
            location,
            place_search,
            router,
            self.fallback,
            answer_agent=answer_agent,
            weather=weather,
            config=config.navigation,
        )
        self.router = TranscriptRouter(
            WakePhraseMatcher(config.wake_words), self.state, self.listening, self.dispatcher
        )

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ListeningMode:
        return self.listening.mode

    @property
    def navigating(self) -> bool:
        return self.state.navigation.navigating

    @property
    def candidates(self) -> List[Candidate]:
        return list(self.state.search.candidates)

    @property
    def current_step_index(self) -> Optional[int]:
        run = self.state.navigation.run
        return run.current_step_index if run is not None else None

    @property
    def current_instruction(self) -> Optional[str]:
        step = self.state.navigation.current_step
        return step.instruction if step is not None else None

    @property
    def announcements(self) -> List[str]:
        return list(self.state.interaction.announcements)

    def add_announcement_listener(self, callback: Callable[[str], None]):
        """Receive every spoken announcement as it is played."""
        self.speech.add_listener(callback)

    def get_state_summary(self) -> Dict:
        summary = self.state.get_state_summary()
        summary["mode"] = self.mode.value
        summary["monitor_running"] = self.monitor.is_running
        summary["capture_running"] = self.capture.is_running
        return summary

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def search(self, query: str) -> int:
        return await self.dispatcher.search(query)

    async def select_candidate(self, index: int) -> bool:
        return await self.dispatcher.select_candidate(index)

    async def start_navigation(self) -> bool:
        return await self.dispatcher.start_navigation()

    async def stop_navigation(self) -> bool:
        return await self.dispatcher.stop_navigation()

    async def repeat_instruction(self) -> bool:
        return await self.dispatcher.repeat_instruction()

    async def set_travel_mode(self, mode: str):
        return await self.dispatcher.switch_travel_mode(mode)

    async def voice_search(self) -> Optional[str]:
        """
        Record one spoken command with pause detection and handle it.

        Wake-word capture is suspended while the command is recorded.

        Returns:
            Optional[str]: The transcribed command, None if nothing was heard
        """
        text = ""
        denied = False
        await self.listening.suspend()
        try:
            handle = await self.command_recorder.record()
            text = ((await self.transcriber.transcribe(handle)) or "").strip()
        except PermissionDenied as e:
            logger.error(f"Voice command recording failed: {e}")
            denied = True
        except (RecordingConflict, TranscriptionFailure, NetworkFailure) as e:
            logger.warning(f"Voice command not captured: {e}")
        except Exception as e:
            logger.exception(f"Unexpected voice command error: {e}")
        finally:
            await self.listening.resume()

        if denied:
            await self.speech.speak(MICROPHONE_DENIED_MESSAGE)
            return None
        if not text:
            await self.speech.speak(NOT_UNDERSTOOD_MESSAGE)
            return None

        logger.info(f"Voice command: {text}")
        self.state.interaction.record_transcript(text)
        await self.dispatcher.handle_free_form(text)
        return text

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Begin listening for the wake phrase."""
        await self.listening.enter_passive()
        logger.info("Listening for the wake phrase")

    async def shutdown(self):
        """Stop navigation and listening without announcements."""
        self.state.navigation.navigating = False
        await self.monitor.shutdown()
        await self.listening.stop()
        await self.speech.interrupt()
        self.recorder.close()
        logger.info("Assistant shut down")

    async def _on_transcript(self, text: str):
        await self.router.handle_transcript(text)

    async def _on_capture_error(self, error: Exception):
        await self.listening.stop()
        await self.speech.speak_brief(MICROPHONE_DENIED_MESSAGE)


def build_assistant(config: CosmoConfig, track: Optional[str] = None) -> CosmoAssistant:
    """
    Build an assistant wired to real services.

    Must be called from inside a running event loop.

    Args:
        config: Cosmo configuration (API keys included)
        track: Optional JSON file of position samples to replay

    Returns:
        CosmoAssistant: Ready to start
    """
    from cosmo_nav.llm.provider_wrapper import OpenAIProvider
    from cosmo_nav.navigation.hazards import OverpassHazardSource
    from cosmo_nav.navigation.location import ReplayLocationProvider
    from cosmo_nav.navigation.routing import GoogleDirectionsRouter
    from cosmo_nav.navigation.search import GooglePlacesSearch
    from cosmo_nav.navigation.weather import WttrWeatherService
    from cosmo_nav.speech.providers.recorder_sounddevice import SoundDeviceRecorder
    from cosmo_nav.speech.providers.tts_openai import OpenAITTS

    services = config.services
    speech_cfg = config.speech

    print("\n[1/4] Initializing speech...")
    recorder = SoundDeviceRecorder(sample_rate=speech_cfg.sample_rate, clip_dir=speech_cfg.clip_dir)
    if speech_cfg.stt_backend == "vosk":
        from cosmo_nav.speech.providers.stt_vosk import VoskTranscriber
        transcriber = VoskTranscriber(speech_cfg.vosk_model_path, speech_cfg.sample_rate)
        print("   ✓ Vosk STT initialized")
    else:
        from cosmo_nav.speech.providers.stt_assemblyai import AssemblyAITranscriber
        transcriber = AssemblyAITranscriber(
            services.assemblyai_api_key,
            base_url=services.assemblyai_url,
            timeout_sec=services.request_timeout_sec,
            poll_interval_sec=services.transcript_poll_interval_sec,
            max_polls=services.transcript_max_polls,
        )
        print("   ✓ AssemblyAI STT initialized")
    tts = OpenAITTS(
        api_key=services.openai_api_key or None,
        voice=speech_cfg.tts_voice,
        model=speech_cfg.tts_model,
        speed=speech_cfg.tts_speed,
        volume=speech_cfg.tts_volume,
    )
    print("   ✓ OpenAI TTS initialized")

    print("[2/4] Initializing location...")
    if track:
        location = ReplayLocationProvider.from_file(track)
        print(f"   ✓ Replaying track {track}")
    else:
        location = ReplayLocationProvider([DEFAULT_POSITION])
        print("   ✗ No track given, using a fixed position")

    print("[3/4] Initializing map services...")
    timeout = services.request_timeout_sec
    if not services.google_maps_api_key:
        print("   ✗ GOOGLE_MAPS_API_KEY not set, search and routing will fail")
    places = GooglePlacesSearch(
        services.google_maps_api_key, services.places_nearby_url, services.places_text_url, timeout
    )
    directions = GoogleDirectionsRouter(services.google_maps_api_key, services.directions_url, timeout)
    hazards = OverpassHazardSource(services.overpass_url, timeout)
    weather = WttrWeatherService(services.weather_url, timeout)
    print("   ✓ Places, Directions, Overpass and weather ready")

    print("[4/4] Initializing LLM...")
    llm = None
    if services.openai_api_key:
        llm = OpenAIProvider(services.openai_api_key, config.llm.model, config.llm.timeout_sec)
        print(f"   ✓ LLM initialized ({config.llm.model})")
    else:
        print("   ✗ OPENAI_API_KEY not set, using keyword routing only")

    return CosmoAssistant(
        config, recorder, transcriber, tts, location, places, directions,
        hazards=hazards, weather=weather, llm=llm,
    )


async def run(config: CosmoConfig, track: Optional[str] = None):
    """Run the assistant until interrupted."""
    print("=" * 60)
    print(f"Cosmo Navigation Assistant {__version__} - Initializing...")
    print("=" * 60)

    assistant = build_assistant(config, track)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    print("\n" + "=" * 60)
    print(f"Cosmo Navigation Assistant {__version__} - Ready!")
    print("Say 'Hey Cosmo' followed by a destination. Press Ctrl+C to exit.")
    print("=" * 60)

    await assistant.start()
    try:
        await stop_event.wait()
    finally:
        print("\n[COSMO] Shutting down...")
        await assistant.shutdown()
        print("[COSMO] Shutdown complete")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Cosmo hands-free navigation assistant")
    parser.add_argument("--track", help="JSON file of position samples to replay")
    parser.add_argument("--mode", choices=["walking", "transit"], help="Initial travel mode")
    parser.add_argument("--stt", choices=["assemblyai", "vosk"], help="Speech-to-text backend")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    args = parser.parse_args()

    config = CosmoConfig.from_env()
    if args.mode:
        config.navigation.default_travel_mode = args.mode
    if args.stt:
        config.speech.stt_backend = args.stt
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(config, args.track))
    except KeyboardInterrupt:
        print("\n[COSMO] Interrupt received")


if __name__ == "__main__":
    main()
