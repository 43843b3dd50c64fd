"""
Speech Output Coordinator.

Serializes all spoken output against listening so the microphone is never
open while the speaker plays. Every announcement, from command responses or
from the navigation monitor, goes through here.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from cosmo_nav.core.state_manager import StateManager
from cosmo_nav.hardware.interfaces import ISpeechOutput

logger = logging.getLogger(__name__)

DoneCallback = Callable[[], Union[None, Awaitable[None]]]


class SpeechOutputCoordinator:
    """
    Half-duplex speech arbiter.

    Suspends the listening controller before playback and resumes it after
    completion or failure. Playback is serialized with a lock, so alerts from
    the navigation monitor never talk over command responses.
    """

    def __init__(
        self,
        speech: ISpeechOutput,
        state: StateManager,
        restart_delay_sec: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize coordinator.

        Args:
            speech: Speech output collaborator
            state: State manager (announcement history is recorded here)
            restart_delay_sec: Pause between playback end and listening restart
            sleep: Sleep coroutine function (injectable for tests)
        """
        self.speech = speech
        self.state = state
        self.restart_delay_sec = restart_delay_sec
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._listeners: List[Callable[[str], None]] = []
        self.listening = None

    def attach_listening(self, listening):
        """
        Attach the listening controller this coordinator suspends.

        Args:
            listening: ListeningModeController instance
        """
        self.listening = listening

    def add_listener(self, callback: Callable[[str], None]):
        """
        Subscribe to spoken announcements.

        Args:
            callback: Called with each text right before it is played
        """
        self._listeners.append(callback)

    @property
    def is_speaking(self) -> bool:
        return self._lock.locked()

    async def speak(
        self,
        text: str,
        on_done: Optional[DoneCallback] = None,
        restart_listening: bool = True
    ) -> bool:
        """
        Speak text with listening suspended.

        Args:
            text: Text to speak
            on_done: Optional callback run after playback (success or failure)
            restart_listening: Resume listening afterwards; if False, listening
                stays stopped until the caller enters a listening mode

        Returns:
            bool: True if playback succeeded
        """
        async with self._lock:
            if self.listening is not None:
                await self.listening.suspend()
            try:
                ok = await self._play(text)
            finally:
                if self.listening is not None:
                    if restart_listening:
                        await self._sleep(self.restart_delay_sec)
                        await self.listening.resume()
                    else:
                        self.listening.release()

        if on_done is not None:
            result = on_done()
            if inspect.isawaitable(result):
                await result
        return ok

    async def speak_brief(self, text: str) -> bool:
        """
        Speak a short navigation announcement.

        Listening is resumed afterwards only if it was running before,
        regardless of playback success.

        Args:
            text: Text to speak

        Returns:
            bool: True if playback succeeded
        """
        async with self._lock:
            was_listening = self.listening is not None and self.listening.is_listening
            if self.listening is not None:
                await self.listening.suspend()
            try:
                ok = await self._play(text)
            finally:
                if self.listening is not None:
                    if was_listening:
                        await self._sleep(self.restart_delay_sec)
                        await self.listening.resume()
                    else:
                        self.listening.release()
        return ok

    async def interrupt(self):
        """Stop in-progress playback (before a new search or selection)."""
        try:
            await self.speech.stop()
        except Exception as e:
            logger.warning(f"Failed to interrupt speech: {e}")

    async def _play(self, text: str) -> bool:
        """
        Play text, treating playback errors as completion.

        Returns:
            bool: True on success
        """
        self.state.interaction.record_announcement(text)
        for callback in self._listeners:
            try:
                callback(text)
            except Exception as e:
                logger.warning(f"Announcement listener failed: {e}")

        logger.info(f"[COSMO] {text}")
        try:
            await self.speech.speak(text)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Speech playback failed: {e}")
            return False
