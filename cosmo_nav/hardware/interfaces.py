"""
Collaborator Interface Definitions.

Abstract base classes for every external dependency of the voice and
navigation core, enabling dependency injection and mock implementations for
testing without a microphone, speaker, GPS or network.

All methods that may block are coroutines; adapters for blocking libraries
run their work in a worker thread.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from cosmo_nav.navigation.models import Candidate, Coord, HazardRecord, PositionSample, Route, TravelMode


class IRecording(ABC):
    """
    A single open microphone recording.

    The microphone stays held until ``release()``; ``stop()`` finalizes the
    clip and returns a handle the transcriber understands (usually a path).
    """

    @abstractmethod
    async def stop(self) -> str:
        """
        Finish recording.

        Returns:
            str: Clip handle for the transcription service
        """
        pass

    @abstractmethod
    async def release(self):
        """Release the recording resource. Safe to call more than once."""
        pass

    def level_db(self) -> Optional[float]:
        """
        Current input level in dBFS, if metering is available.

        Returns:
            Optional[float]: Level in decibels, None without metering
        """
        return None


class IAudioRecorder(ABC):
    """Microphone access."""

    @abstractmethod
    async def start(self) -> IRecording:
        """
        Open a new recording.

        Returns:
            IRecording: The open recording

        Raises:
            RecordingConflict: If a recording is already open
            PermissionDenied: If microphone access is refused
        """
        pass

    @abstractmethod
    def close(self):
        """Clean shutdown of recorder resources."""
        pass


class ITranscriber(ABC):
    """Speech-to-text service."""

    @abstractmethod
    async def transcribe(self, handle: str) -> str:
        """
        Transcribe a recorded clip.

        Args:
            handle: Clip handle returned by ``IRecording.stop()``

        Returns:
            str: Transcribed text, empty string if no speech detected

        Raises:
            TranscriptionFailure: If the service could not transcribe the clip
            NetworkFailure: If the service was unreachable
        """
        pass


class ISpeechOutput(ABC):
    """Text-to-speech playback."""

    @abstractmethod
    async def speak(self, text: str):
        """
        Speak text and return when playback has finished.

        Args:
            text: Text to speak

        Raises:
            Exception: Any playback failure
        """
        pass

    @abstractmethod
    async def stop(self):
        """Interrupt playback in progress, if any."""
        pass

    @abstractmethod
    def is_speaking(self) -> bool:
        """
        Check if speech is currently playing.

        Returns:
            bool: True if speaking
        """
        pass


class ILocationProvider(ABC):
    """Device position source."""

    @abstractmethod
    async def current_position(self) -> PositionSample:
        """
        Get the current position fix.

        Returns:
            PositionSample: Latest fix

        Raises:
            PermissionDenied: If location access is refused
        """
        pass

    async def samples(self, interval_sec: float) -> AsyncIterator[PositionSample]:
        """
        Continuous stream of position fixes.

        Args:
            interval_sec: Seconds between fixes
        """
        while True:
            yield await self.current_position()
            await asyncio.sleep(interval_sec)


class IPlaceSearch(ABC):
    """Place search service."""

    @abstractmethod
    async def search(self, query: str, near: Coord) -> List[Candidate]:
        """
        Search places matching a query.

        Args:
            query: Free text query
            near: Position to bias results towards

        Returns:
            List of candidates in service order (unranked)

        Raises:
            NetworkFailure: If the service was unreachable
        """
        pass


class IRouter(ABC):
    """Directions service."""

    @abstractmethod
    async def route(self, origin: Coord, destination: Coord, mode: TravelMode) -> Route:
        """
        Compute a route.

        Args:
            origin: Start position
            destination: Destination position
            mode: Travel mode

        Returns:
            Route: Steps and geometry

        Raises:
            NoRouteFound: If no route exists
            RoutingDenied: If the service rejected the request
            NetworkFailure: If the service was unreachable
        """
        pass


class IHazardSource(ABC):
    """Pedestrian hazard data."""

    @abstractmethod
    async def hazards_near(self, lat: float, lon: float, radius_m: float) -> List[HazardRecord]:
        """
        Find hazards around a position.

        Args:
            lat: Latitude
            lon: Longitude
            radius_m: Search radius in metres

        Returns:
            List of hazards, nearest first
        """
        pass


class IWeatherService(ABC):
    """Current weather conditions."""

    @abstractmethod
    async def current_conditions(self, place: Optional[str] = None, near: Optional[Coord] = None) -> str:
        """
        Describe current weather as a sentence ready to speak.

        Args:
            place: Place name, if the user named one
            near: Position to use when no place is given

        Returns:
            str: Weather report

        Raises:
            NetworkFailure: If the service was unreachable
        """
        pass


class ILLMProvider(ABC):
    """
    Generative language backend.

    ``chat`` raises ``AIRateLimited`` for rate or quota rejections and
    ``AIError`` for any other backend failure.
    """

    @abstractmethod
    async def chat(self, messages: List[Dict[str, str]], **kwargs) -> Any:
        """
        Send chat messages.

        Args:
            messages: List of message dicts with 'role' and 'content'
            **kwargs: Additional parameters (max_tokens, temperature, etc.)

        Returns:
            Provider response object
        """
        pass

    @abstractmethod
    def extract_text(self, response: Any) -> str:
        """
        Extract text content from a chat response.

        Args:
            response: Response object from chat()

        Returns:
            str: Extracted text
        """
        pass
