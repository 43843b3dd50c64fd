"""
Voice Command Recorder.

Records a single spoken command of up to 15 seconds and stops early once the
speaker has paused for about three seconds. The noise floor is calibrated
from the first second of input.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from cosmo_nav.config.settings import ListeningConfig
from cosmo_nav.hardware.interfaces import IAudioRecorder, IRecording

logger = logging.getLogger(__name__)


class PauseDetector:
    """
    Input level state machine for end-of-speech detection.

    Levels above baseline + speech margin count as speech; after speech has
    been heard, levels at or below baseline + pause margin count towards the
    pause. Anything in between resets the pause counter.
    """

    def __init__(self, config: Optional[ListeningConfig] = None):
        self.config = config or ListeningConfig()
        self.baseline_db = self.config.default_baseline_db
        self.calibration_levels = []
        self.speech_detected = False
        self.quiet_checks = 0

    def calibrate(self, level: Optional[float]):
        """Feed a level sampled during the calibration window."""
        if level is None:
            return
        self.calibration_levels.append(level)
        if len(self.calibration_levels) >= 2:
            self.baseline_db = max(self.calibration_levels)

    def update(self, level: Optional[float]) -> bool:
        """
        Feed a level sampled after calibration.

        Args:
            level: Input level in dB, or None if metering is unavailable

        Returns:
            bool: True once the required pause has been observed
        """
        if level is None:
            if self.speech_detected:
                self.quiet_checks += 1
        elif level > self.baseline_db + self.config.speech_margin_db:
            self.speech_detected = True
            self.quiet_checks = 0
        elif self.speech_detected and level <= self.baseline_db + self.config.pause_margin_db:
            self.quiet_checks += 1
        elif level > self.baseline_db + self.config.pause_margin_db:
            self.speech_detected = True
            self.quiet_checks = 0
        return self.quiet_checks >= self.config.pause_checks_required


class CommandRecorder:
    """
    One-shot command recording with pause detection.

    The caller is responsible for suspending the wake-word capture loop while
    this holds the microphone.
    """

    def __init__(
        self,
        recorder: IAudioRecorder,
        config: Optional[ListeningConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize command recorder.

        Args:
            recorder: Microphone collaborator
            config: Listening configuration
            clock: Monotonic time source
            sleep: Sleep coroutine function
        """
        self.recorder = recorder
        self.config = config or ListeningConfig()
        self._clock = clock
        self._sleep = sleep

    async def record(self) -> str:
        """
        Record until a pause or the maximum duration.

        Returns:
            str: Clip handle of the recorded command

        Raises:
            RecordingConflict: If the microphone is held elsewhere
            PermissionDenied: If microphone access is refused
        """
        recording = await self.recorder.start()
        try:
            await self._monitor(recording)
            return await recording.stop()
        finally:
            await recording.release()

    async def _monitor(self, recording: IRecording):
        cfg = self.config
        detector = PauseDetector(cfg)
        started = self._clock()

        while True:
            await self._sleep(cfg.level_check_interval_sec)
            elapsed = self._clock() - started
            if elapsed >= cfg.command_max_sec:
                logger.info("Command recording reached maximum length")
                return

            level = recording.level_db()
            if elapsed < cfg.calibration_sec:
                detector.calibrate(level)
                continue

            if detector.update(level):
                logger.info(f"Pause detected after {elapsed:.1f}s, finishing command")
                return
