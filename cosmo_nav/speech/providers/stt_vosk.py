"""
Speech-to-Text using Vosk.

Offline speech recognition using Vosk models. Used when no cloud
transcription key is configured or when running without network access.
"""

import asyncio
import json
import logging
import wave
from pathlib import Path

try:
    from vosk import Model, KaldiRecognizer
    VOSK_AVAILABLE = True
except ImportError:
    VOSK_AVAILABLE = False

from cosmo_nav.core.errors import TranscriptionFailure
from cosmo_nav.hardware.interfaces import ITranscriber

logger = logging.getLogger(__name__)


class VoskTranscriber(ITranscriber):
    """
    Vosk-based transcription of recorded WAV clips.

    Recognition runs in a worker thread so the event loop keeps cycling the
    capture loop while a clip is decoded.
    """

    def __init__(
        self,
        model_path: str = "models/vosk-model-small-en-us-0.15",
        sample_rate: int = 16000
    ):
        """
        Initialize Vosk transcriber.

        Args:
            model_path: Path to the Vosk model directory
            sample_rate: Expected clip sample rate in Hz

        Raises:
            ImportError: If Vosk is not installed
            RuntimeError: If the model cannot be found
        """
        if not VOSK_AVAILABLE:
            raise ImportError(
                "Vosk not installed. Install with: pip install vosk"
            )

        if not Path(model_path).exists():
            raise RuntimeError(f"Vosk model not found at {model_path}")

        self.sample_rate = sample_rate
        self.model = Model(model_path)

    async def transcribe(self, handle: str) -> str:
        return await asyncio.to_thread(self.transcribe_wav, handle)

    def transcribe_wav(self, wav_path: str) -> str:
        """
        Transcribe WAV file to text (blocking).

        Args:
            wav_path: Path to WAV audio file

        Returns:
            str: Transcribed text, empty string if no speech detected

        Raises:
            TranscriptionFailure: If the file is missing or in the wrong format
        """
        if not Path(wav_path).exists():
            raise TranscriptionFailure(f"WAV file not found: {wav_path}")

        # A recognizer per clip keeps concurrent transcriptions independent
        recognizer = KaldiRecognizer(self.model, self.sample_rate)

        with wave.open(wav_path, "rb") as wf:
            if wf.getnchannels() != 1:
                raise TranscriptionFailure("Audio must be mono")

            if wf.getsampwidth() != 2:
                raise TranscriptionFailure("Audio must be 16-bit")

            if wf.getframerate() != self.sample_rate:
                raise TranscriptionFailure(f"Sample rate must be {self.sample_rate}Hz")

            # Process audio in chunks
            while True:
                data = wf.readframes(4000)
                if len(data) == 0:
                    break

                recognizer.AcceptWaveform(data)

            result = json.loads(recognizer.FinalResult())
            text = result.get("text", "").strip()
            logger.debug(f"Vosk transcript: {text!r}")
            return text
