"""
Microphone recording using sounddevice.

Captures 16-bit mono PCM through PortAudio and writes each recording to a WAV
file that the transcription providers accept.
"""

import asyncio
import logging
import shutil
import tempfile
import threading
import wave
from pathlib import Path
from typing import List, Optional

import numpy as np

try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
except (ImportError, OSError):
    # OSError: PortAudio library missing
    SOUNDDEVICE_AVAILABLE = False

from cosmo_nav.core.errors import PermissionDenied, RecordingConflict
from cosmo_nav.hardware.interfaces import IAudioRecorder, IRecording

logger = logging.getLogger(__name__)


class SoundDeviceRecording(IRecording):
    """One open input stream accumulating audio chunks."""

    def __init__(self, recorder: 'SoundDeviceRecorder', path: Path):
        self.recorder = recorder
        self.path = path
        self._chunks: List[bytes] = []
        self._chunks_lock = threading.Lock()
        self._level_db: Optional[float] = None
        self._stream = None
        self._released = False

    def open(self):
        self._stream = sd.RawInputStream(
            samplerate=self.recorder.sample_rate,
            blocksize=1024,
            device=self.recorder.device,
            dtype="int16",
            channels=1,
            callback=self._callback
        )
        self._stream.start()

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Input stream status: {status}")
        data = bytes(indata)
        samples = np.frombuffer(data, dtype=np.int16).astype(np.float32)
        if samples.size:
            rms = float(np.sqrt(np.mean(np.square(samples / 32768.0))))
            self._level_db = 20.0 * np.log10(max(rms, 1e-6))
        with self._chunks_lock:
            self._chunks.append(data)

    def level_db(self) -> Optional[float]:
        return self._level_db

    async def stop(self) -> str:
        await asyncio.to_thread(self._close_stream)
        await asyncio.to_thread(self._write_wav)
        return str(self.path)

    async def release(self):
        if self._released:
            return
        self._released = True
        await asyncio.to_thread(self._close_stream)
        self.recorder._recording_released(self)

    def _close_stream(self):
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()

    def _write_wav(self):
        with self._chunks_lock:
            audio = b"".join(self._chunks)
        with wave.open(str(self.path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)  # 16-bit PCM
            wf.setframerate(self.recorder.sample_rate)
            wf.writeframes(audio)


class SoundDeviceRecorder(IAudioRecorder):
    """
    Single-owner microphone.

    Only one recording may be open at a time; a second ``start()`` before the
    first is released raises ``RecordingConflict``.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        device: Optional[int] = None,
        clip_dir: Optional[str] = None
    ):
        """
        Initialize recorder.

        Args:
            sample_rate: Capture rate in Hz
            device: PortAudio input device index (None for default)
            clip_dir: Directory for WAV clips (None for a temporary directory)

        Raises:
            ImportError: If sounddevice or PortAudio is not available
        """
        if not SOUNDDEVICE_AVAILABLE:
            raise ImportError(
                "sounddevice not available. Install with: pip install sounddevice "
                "(and the PortAudio system library)"
            )

        self.sample_rate = sample_rate
        self.device = device
        # A temporary clip directory is removed again by close()
        self._owns_clip_dir = not clip_dir
        self.clip_dir = Path(clip_dir) if clip_dir else Path(tempfile.mkdtemp(prefix="cosmo-clips-"))
        self.clip_dir.mkdir(parents=True, exist_ok=True)

        self._current: Optional[SoundDeviceRecording] = None
        self._counter = 0

    async def start(self) -> IRecording:
        if self._current is not None:
            raise RecordingConflict("A recording is already open")

        self._counter += 1
        # Rotate file names so a clip being transcribed is not overwritten
        path = self.clip_dir / f"clip-{self._counter % 8}.wav"
        recording = SoundDeviceRecording(self, path)
        self._current = recording
        try:
            await asyncio.to_thread(recording.open)
        except sd.PortAudioError as e:
            self._current = None
            message = str(e)
            if "permission" in message.lower() or "denied" in message.lower():
                raise PermissionDenied("microphone", message)
            raise
        return recording

    def _recording_released(self, recording: SoundDeviceRecording):
        if self._current is recording:
            self._current = None

    def close(self):
        """Remove the temporary clip directory."""
        if self._owns_clip_dir and self.clip_dir.exists():
            shutil.rmtree(self.clip_dir, ignore_errors=True)
            logger.debug(f"Removed clip directory {self.clip_dir}")
