"""
Text-to-Speech using OpenAI TTS.

Cloud speech synthesis using OpenAI's TTS API, played through ffplay or
mpg123.
"""

import asyncio
import logging
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Optional

try:
    from openai import OpenAI
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False

from cosmo_nav.hardware.interfaces import ISpeechOutput

logger = logging.getLogger(__name__)


class OpenAITTS(ISpeechOutput):
    """
    OpenAI TTS provider.

    Synthesis and playback run in a worker thread; ``speak`` returns when the
    player process exits. ``stop`` terminates the player.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice: str = "nova",
        model: str = "tts-1",
        speed: float = 1.0,
        volume: float = 1.5
    ):
        """
        Initialize OpenAI TTS.

        Args:
            api_key: OpenAI API key (if None, the client reads OPENAI_API_KEY)
            voice: Voice name (alloy, echo, fable, onyx, nova, shimmer)
            model: Model name (tts-1 or tts-1-hd)
            speed: Speech speed (0.25 to 4.0)
            volume: Volume multiplier (1.0 = normal)

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "OpenAI package not installed. Install with: pip install openai"
            )

        self.client = OpenAI(api_key=api_key) if api_key else OpenAI()
        self.voice = voice
        self.model = model
        self.speed = speed
        self.volume = volume

        self._speaking = False
        self._speaking_lock = threading.Lock()
        self._playback_process: Optional[subprocess.Popen] = None

    async def speak(self, text: str):
        if not text.strip():
            return
        await asyncio.to_thread(self._speak_blocking, text)

    async def stop(self):
        await asyncio.to_thread(self._stop_blocking)

    def is_speaking(self) -> bool:
        """
        Check if TTS is currently speaking.

        Returns:
            bool: True if speech is in progress
        """
        with self._speaking_lock:
            return self._speaking

    def _speak_blocking(self, text: str):
        """
        Synthesize and play text.

        Streams straight into ffplay when available, otherwise downloads to a
        temporary file for mpg123.

        Raises:
            RuntimeError: If no audio player is available
        """
        with self._speaking_lock:
            self._speaking = True
        try:
            with self.client.audio.speech.with_streaming_response.create(
                model=self.model,
                voice=self.voice,
                input=text,
                speed=self.speed,
                response_format="mp3"
            ) as response:
                try:
                    self._stream_to_ffplay(response)
                    return
                except FileNotFoundError:
                    pass

                with tempfile.NamedTemporaryFile(suffix=".mp3", delete=False) as temp_file:
                    temp_path = temp_file.name
                try:
                    response.stream_to_file(temp_path)
                    self._play_file(temp_path)
                finally:
                    if Path(temp_path).exists():
                        Path(temp_path).unlink()
        finally:
            with self._speaking_lock:
                self._speaking = False

    def _stream_to_ffplay(self, response):
        """
        Pipe audio chunks to ffplay as they arrive.

        Raises:
            FileNotFoundError: If ffplay is not installed
        """
        self._playback_process = subprocess.Popen(
            [
                "ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet",
                "-af", f"volume={self.volume}",
                "-i", "pipe:0"
            ],
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL
        )
        process = self._playback_process
        try:
            for chunk in response.iter_bytes(chunk_size=4096):
                if process.stdin:
                    process.stdin.write(chunk)
            if process.stdin:
                process.stdin.close()
        except BrokenPipeError:
            logger.debug("Playback interrupted")
        process.wait()
        self._playback_process = None

    def _play_file(self, audio_path: str):
        """
        Play an mp3 file with mpg123.

        Args:
            audio_path: Path to audio file

        Raises:
            RuntimeError: If no audio player is available
        """
        # mpg123 volume scale: 32768 = 100%
        scale = int(32768 * self.volume)
        try:
            self._playback_process = subprocess.Popen(
                ["mpg123", "-q", "-f", str(scale), audio_path],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL
            )
        except FileNotFoundError:
            raise RuntimeError("No audio player found. Install ffplay or mpg123.")
        self._playback_process.wait()
        self._playback_process = None

    def _stop_blocking(self):
        process = self._playback_process
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                process.kill()
