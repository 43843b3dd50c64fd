"""
Audio Capture Loop.

Continuously records short clips while listening is enabled and hands each
finished clip to the transcription service without waiting for the result.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from cosmo_nav.core.errors import (
    NetworkFailure, PermissionDenied, RecordingConflict, TranscriptionFailure
)
from cosmo_nav.hardware.interfaces import IAudioRecorder, IRecording, ITranscriber

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class AudioCaptureLoop:
    """
    Cancellable clip capture task.

    Each cycle releases the previous recording, opens a new one, waits the
    clip duration, finalizes the clip and starts a fire-and-forget
    transcription. At most one recording is open at a time.

    ``stop()`` is used for temporary suspension (speech playback);
    ``shutdown()`` additionally discards transcripts still in flight.
    """

    def __init__(
        self,
        recorder: IAudioRecorder,
        transcriber: ITranscriber,
        on_transcript: TranscriptCallback,
        on_error: Optional[ErrorCallback] = None,
        clip_duration_sec: float = 1.5,
        conflict_backoff_sec: float = 0.1,
        error_backoff_sec: float = 0.2
    ):
        """
        Initialize capture loop.

        Args:
            recorder: Microphone collaborator
            transcriber: Transcription collaborator
            on_transcript: Coroutine called with each non-empty transcript
            on_error: Coroutine called when the loop dies on a fatal error
            clip_duration_sec: Length of each clip
            conflict_backoff_sec: Wait after a recording conflict
            error_backoff_sec: Wait after any other cycle error
        """
        self.recorder = recorder
        self.transcriber = transcriber
        self.on_transcript = on_transcript
        self.on_error = on_error
        self.clip_duration_sec = clip_duration_sec
        self.conflict_backoff_sec = conflict_backoff_sec
        self.error_backoff_sec = error_backoff_sec

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._current: Optional[IRecording] = None
        self._previous: Optional[IRecording] = None
        self._pending: Set[asyncio.Task] = set()
        self._error_task: Optional[asyncio.Task] = None
        self._generation = 0
        self.cycles = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start capturing. No-op if already running."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        logger.debug("Capture loop started")

    async def stop(self):
        """
        Stop capturing and release the open recording.

        Returns once the loop has exited. Transcriptions already in flight are
        still delivered.
        """
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only the loop task being cancelled is expected here
            if not task.cancelled():
                raise
        self._task = None
        await self._release_all()
        logger.debug("Capture loop stopped")

    async def shutdown(self):
        """Stop capturing and drop transcripts still in flight."""
        self._generation += 1
        await self.stop()

    async def _run(self, stop_event: asyncio.Event):
        fatal: Optional[Exception] = None
        try:
            while not stop_event.is_set():
                try:
                    await self._cycle(stop_event)
                except RecordingConflict:
                    logger.debug("Recording already open, skipping cycle")
                    await self._wait(stop_event, self.conflict_backoff_sec)
                except PermissionDenied as e:
                    logger.error(f"Microphone unavailable, capture stopped: {e}")
                    fatal = e
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Capture cycle failed: {e}")
                    await self._wait(stop_event, self.error_backoff_sec)
        finally:
            await self._release_all()

        if fatal is not None and self.on_error is not None:
            # Handler runs outside this task; it may stop capture or wait on speech
            self._error_task = asyncio.create_task(self._report(fatal))

    async def _report(self, error: Exception):
        try:
            await self.on_error(error)
        except Exception as e:
            logger.exception(f"Capture error handler failed: {e}")

    async def _cycle(self, stop_event: asyncio.Event):
        await self._release_previous()

        self._current = await self.recorder.start()
        await self._wait(stop_event, self.clip_duration_sec)

        recording, self._current = self._current, None
        if stop_event.is_set():
            # Clip cut short by stop; nothing to transcribe
            await recording.release()
            return

        handle = await recording.stop()
        self._previous = recording
        self.cycles += 1
        self._spawn_transcription(handle)

    def _spawn_transcription(self, handle: str):
        task = asyncio.create_task(self._transcribe(handle, self._generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _transcribe(self, handle: str, generation: int):
        try:
            text = await self.transcriber.transcribe(handle)
        except (TranscriptionFailure, NetworkFailure) as e:
            logger.warning(f"Transcription failed for {handle}: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected transcription error for {handle}: {e}")
            return

        if generation != self._generation:
            logger.debug(f"Discarding transcript from closed capture session: {text!r}")
            return
        if not text or not text.strip():
            return

        try:
            await self.on_transcript(text.strip())
        except Exception as e:
            logger.exception(f"Transcript handler failed: {e}")

    async def _wait(self, stop_event: asyncio.Event, seconds: float):
        """Wait up to ``seconds``, returning early when stop is requested."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _release_previous(self):
        recording, self._previous = self._previous, None
        if recording is not None:
            await recording.release()

    async def _release_all(self):
        await self._release_previous()
        recording, self._current = self._current, None
        if recording is not None:
            await recording.release()
