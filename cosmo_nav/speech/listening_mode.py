"""
Listening Mode Controller.

State machine over Idle, Passive, Active and Suspended that decides whether a
transcript needs the wake phrase, owns the Active-mode expiry timer and
starts or stops the capture loop.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from cosmo_nav.core.state_manager import ListeningMode, StateManager
from cosmo_nav.speech.capture_loop import AudioCaptureLoop

logger = logging.getLogger(__name__)


class ListeningModeController:
    """
    Listening state machine.

    Transitions:
        IDLE -> PASSIVE        enter_passive()
        PASSIVE -> ACTIVE      enter_active(window)
        ACTIVE -> PASSIVE      expiry, end_active()
        any -> SUSPENDED       suspend() (speech playback)
        SUSPENDED -> previous  resume()
        any -> IDLE            stop()

    Mode changes requested while the speech coordinator holds a suspension
    are recorded as the mode to resume into.
    """

    def __init__(
        self,
        state: StateManager,
        capture: AudioCaptureLoop,
        active_window_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize controller.

        Args:
            state: State manager holding the ListeningSession
            capture: Capture loop to start and stop
            active_window_sec: Default Active-mode window
            clock: Monotonic time source
        """
        self.state = state
        self.session = state.listening
        self.capture = capture
        self.active_window_sec = active_window_sec
        self._clock = clock
        self._held = False
        self._expiry_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ListeningMode:
        self._expire_if_due()
        return self.session.mode

    @property
    def requires_wake_phrase(self) -> bool:
        return self.mode is not ListeningMode.ACTIVE

    @property
    def is_listening(self) -> bool:
        return self.capture.is_running

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def enter_passive(self):
        """Listen for the wake phrase."""
        self._cancel_expiry()
        self.session.active_mode_expiry = None
        if self._held:
            self._defer(ListeningMode.PASSIVE)
            return
        self._set_mode(ListeningMode.PASSIVE)
        self.capture.start()

    async def enter_active(self, window_sec: Optional[float] = None):
        """
        Accept commands without the wake phrase for a limited window.

        Args:
            window_sec: Window length (defaults to the configured window)
        """
        window = self.active_window_sec if window_sec is None else window_sec
        self.session.active_mode_expiry = self._clock() + window
        self._schedule_expiry(window)
        if self._held:
            self._defer(ListeningMode.ACTIVE)
            return
        self._set_mode(ListeningMode.ACTIVE)
        self.capture.start()

    def end_active(self):
        """Return to Passive after a command was resolved."""
        self._cancel_expiry()
        self.session.active_mode_expiry = None
        if self.session.mode is ListeningMode.ACTIVE:
            self._set_mode(ListeningMode.PASSIVE)
        elif self.session.resume_mode is ListeningMode.ACTIVE:
            self.session.resume_mode = ListeningMode.PASSIVE

    async def suspend(self):
        """Stop capture for speech playback, remembering the current mode."""
        self._held = True
        mode = self.mode
        if mode in (ListeningMode.PASSIVE, ListeningMode.ACTIVE):
            self.session.resume_mode = mode
            self._set_mode(ListeningMode.SUSPENDED)
        elif mode is ListeningMode.IDLE:
            self.session.resume_mode = ListeningMode.IDLE
        await self.capture.stop()

    async def resume(self):
        """Restore the mode held before suspension and restart capture."""
        self._held = False
        if self.session.mode is not ListeningMode.SUSPENDED:
            return
        target = self.session.resume_mode or ListeningMode.PASSIVE
        self.session.resume_mode = None
        if target is ListeningMode.ACTIVE and not self._active_window_open():
            target = ListeningMode.PASSIVE
            self.session.active_mode_expiry = None
        if target in (ListeningMode.IDLE, ListeningMode.SUSPENDED):
            target = ListeningMode.PASSIVE
        self._set_mode(target)
        self.capture.start()

    def release(self):
        """End a suspension without restarting capture."""
        self._held = False

    async def stop(self):
        """Tear down listening entirely."""
        self._cancel_expiry()
        self._held = False
        self.session.reset()
        await self.capture.shutdown()
        logger.info("Listening stopped")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_mode(self, mode: ListeningMode):
        if self.session.mode is not mode:
            logger.info(f"Listening mode: {self.session.mode.value} -> {mode.value}")
        self.session.mode = mode

    def _defer(self, mode: ListeningMode):
        if self.session.mode is ListeningMode.IDLE:
            self._set_mode(ListeningMode.SUSPENDED)
        self.session.resume_mode = mode

    def _active_window_open(self) -> bool:
        expiry = self.session.active_mode_expiry
        return expiry is not None and self._clock() < expiry

    def _expire_if_due(self):
        if self.session.mode is ListeningMode.ACTIVE and not self._active_window_open():
            logger.info("Active listening window expired")
            self.session.active_mode_expiry = None
            self._set_mode(ListeningMode.PASSIVE)

    def _schedule_expiry(self, window: float):
        self._cancel_expiry()
        try:
            self._expiry_task = asyncio.get_running_loop().create_task(self._expire_after(window))
        except RuntimeError:
            self._expiry_task = None

    async def _expire_after(self, window: float):
        await asyncio.sleep(window)
        self._expiry_task = None
        self._expire_if_due()
        if self.session.resume_mode is ListeningMode.ACTIVE and not self._active_window_open():
            self.session.resume_mode = ListeningMode.PASSIVE

    def _cancel_expiry(self):
        task, self._expiry_task = self._expiry_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
