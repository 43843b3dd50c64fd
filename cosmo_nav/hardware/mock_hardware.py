"""
Mock Collaborator Implementations.

Provides mock implementations of all collaborator interfaces for testing
without a microphone, speaker, GPS fix or network access. Each mock records
its calls for test assertions.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from cosmo_nav.core.errors import PermissionDenied, RecordingConflict
from cosmo_nav.hardware.interfaces import (
    IAudioRecorder, IRecording, ITranscriber, ISpeechOutput, ILocationProvider,
    IPlaceSearch, IRouter, IHazardSource, IWeatherService, ILLMProvider
)
from cosmo_nav.navigation.models import Candidate, Coord, HazardRecord, PositionSample, Route, TravelMode


class MockRecording(IRecording):
    """Mock recording that holds a slot on its recorder until released."""

    def __init__(self, recorder: 'MockAudioRecorder', clip_id: int):
        self.recorder = recorder
        self.clip_id = clip_id
        self.stopped = False
        self.released = False

    async def stop(self) -> str:
        self.stopped = True
        return f"mock://clip-{self.clip_id}.wav"

    async def release(self):
        if not self.released:
            self.released = True
            self.recorder.open_count -= 1

    def level_db(self) -> Optional[float]:
        if self.recorder.levels:
            return self.recorder.levels.pop(0)
        return self.recorder.idle_level


class MockAudioRecorder(IAudioRecorder):
    """
    Mock microphone.

    Enforces a single open recording and can be scripted to fail. Items in
    ``failures`` are raised by successive ``start()`` calls before normal
    operation resumes. ``start_delay`` makes each start take that long.
    """

    def __init__(self):
        """Initialize mock recorder with no open recordings."""
        self.logger = logging.getLogger(__name__)
        self.open_count = 0
        self.max_open = 0
        self.start_calls = 0
        self.failures: List[Exception] = []
        self.levels: List[float] = []
        self.idle_level: Optional[float] = -50.0
        self.recordings: List[MockRecording] = []
        self.start_delay = 0.0
        self.closed = False

    async def start(self) -> IRecording:
        self.start_calls += 1
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.failures:
            raise self.failures.pop(0)
        if self.open_count > 0:
            raise RecordingConflict("Only one recording object can be prepared at a given time")
        self.open_count += 1
        self.max_open = max(self.max_open, self.open_count)
        recording = MockRecording(self, len(self.recordings) + 1)
        self.recordings.append(recording)
        self.logger.debug(f"[MOCK] recording {recording.clip_id} started")
        return recording

    def close(self):
        """Clean shutdown."""
        self.closed = True
        self.logger.debug("[MOCK] recorder closed")


class MockTranscriber(ITranscriber):
    """
    Mock transcriber returning scripted results.

    Entries in ``responses`` are returned (or raised, for exceptions) in order;
    once exhausted an empty transcript is returned.
    """

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: List[str] = []

    async def transcribe(self, handle: str) -> str:
        self.calls.append(handle)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            return ""
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class MockSpeechOutput(ISpeechOutput):
    """
    Mock speaker.

    Tracks what was spoken and detects overlap with an open microphone
    recording or with another utterance.
    """

    def __init__(self, recorder: Optional[MockAudioRecorder] = None, delay: float = 0.0):
        self.recorder = recorder
        self.delay = delay
        self.spoken: List[str] = []
        self.fail_all = False
        self.fail_texts: List[str] = []
        self.mic_overlaps = 0
        self.max_concurrent = 0
        self.stop_calls = 0
        self._active = 0

    async def speak(self, text: str):
        if self.recorder is not None and self.recorder.open_count > 0:
            self.mic_overlaps += 1
        self._active += 1
        self.max_concurrent = max(self.max_concurrent, self._active)
        try:
            self.spoken.append(text)
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            if self.fail_all or text in self.fail_texts:
                raise RuntimeError("mock playback failure")
        finally:
            self._active -= 1

    async def stop(self):
        self.stop_calls += 1

    def is_speaking(self) -> bool:
        return self._active > 0


class MockLocationProvider(ILocationProvider):
    """Mock GPS returning a settable position."""

    def __init__(self, position: Optional[PositionSample] = None):
        self.position = position or PositionSample(lat=40.7580, lon=-73.9855)
        self.denied = False
        self.calls = 0

    def move_to(self, lat: float, lon: float, heading: Optional[float] = None):
        """Set the next reported position."""
        self.position = PositionSample(lat=lat, lon=lon, heading=heading)

    async def current_position(self) -> PositionSample:
        self.calls += 1
        if self.denied:
            raise PermissionDenied("location")
        return self.position


class MockPlaceSearch(IPlaceSearch):
    """Mock place search returning fixed candidates."""

    def __init__(self, results: Optional[List[Candidate]] = None):
        self.results = list(results or [])
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def search(self, query: str, near: Coord) -> List[Candidate]:
        self.calls.append({"query": query, "near": near})
        if self.error:
            raise self.error
        return list(self.results)


class MockRouter(IRouter):
    """
    Mock directions service.

    Returns ``routes`` in order (the last one repeats). If ``gate`` is set,
    each call waits on it, which lets tests hold a request in flight.
    """

    def __init__(self, routes: Optional[List[Union[Route, Exception]]] = None):
        self.routes = list(routes or [])
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    async def route(self, origin: Coord, destination: Coord, mode: TravelMode) -> Route:
        self.calls.append({"origin": origin, "destination": destination, "mode": mode})
        if self.gate is not None:
            await self.gate.wait()
        if not self.routes:
            raise RuntimeError("MockRouter has no routes configured")
        result = self.routes.pop(0) if len(self.routes) > 1 else self.routes[0]
        if isinstance(result, Exception):
            raise result
        return result


class MockHazardSource(IHazardSource):
    """Mock hazard data returning a fixed list."""

    def __init__(self, hazards: Optional[List[HazardRecord]] = None):
        self.hazards = list(hazards or [])
        self.error: Optional[Exception] = None
        self.calls = 0

    async def hazards_near(self, lat: float, lon: float, radius_m: float) -> List[HazardRecord]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.hazards)


class MockWeatherService(IWeatherService):
    """Mock weather service."""

    def __init__(self, report: str = "The current weather in Testville is 20 degrees Celsius. It's Sunny."):
        self.report = report
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def current_conditions(self, place: Optional[str] = None, near: Optional[Coord] = None) -> str:
        self.calls.append({"place": place, "near": near})
        if self.error:
            raise self.error
        return self.report


class MockLLMProvider(ILLMProvider):
    """
    Mock LLM returning scripted responses.

    Entries in ``responses`` are returned (or raised, for exceptions) in
    order; once exhausted ``default_response`` is returned.
    """

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None,
                 default_response: str = '{"action": "answer", "response": "I am not sure."}'):
        self.responses = list(responses or [])
        self.default_response = default_response
        self.calls: List[List[Dict[str, str]]] = []

    async def chat(self, messages: List[Dict[str, str]], **kwargs) -> Any:
        self.calls.append(messages)
        if not self.responses:
            return self.default_response
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def extract_text(self, response: Any) -> str:
        return str(response).strip()
