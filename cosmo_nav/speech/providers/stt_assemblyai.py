"""
Speech-to-Text using AssemblyAI.

Cloud transcription: upload the clip, request a transcript, then poll until
it completes.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

import requests

from cosmo_nav.core.errors import NetworkFailure, TranscriptionFailure
from cosmo_nav.hardware.interfaces import ITranscriber

logger = logging.getLogger(__name__)


class AssemblyAITranscriber(ITranscriber):
    """
    AssemblyAI transcription provider.

    HTTP calls are made with ``requests`` in a worker thread.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.assemblyai.com/v2",
        timeout_sec: float = 10.0,
        poll_interval_sec: float = 1.0,
        max_polls: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize AssemblyAI transcriber.

        Args:
            api_key: AssemblyAI API key
            base_url: API base URL
            timeout_sec: Per-request timeout
            poll_interval_sec: Delay between status polls
            max_polls: Maximum number of status polls
            session: Optional requests session (for connection reuse/tests)

        Raises:
            ValueError: If API key is not provided
        """
        if not api_key:
            raise ValueError("AssemblyAI API key not provided")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.poll_interval_sec = poll_interval_sec
        self.max_polls = max_polls
        self.session = session or requests.Session()

    async def transcribe(self, handle: str) -> str:
        return await asyncio.to_thread(self.transcribe_file, handle)

    def transcribe_file(self, audio_path: str) -> str:
        """
        Transcribe an audio file (blocking).

        Args:
            audio_path: Path to the recorded clip

        Returns:
            str: Transcribed text

        Raises:
            TranscriptionFailure: If the service reports an error or times out
            NetworkFailure: If a request fails
        """
        path = Path(audio_path)
        if not path.exists():
            raise TranscriptionFailure(f"Audio file not found: {audio_path}")

        upload_url = self._upload(path.read_bytes())
        transcript_id = self._request_transcript(upload_url)
        return self._poll(transcript_id)

    def _headers(self, content_type: Optional[str] = None) -> dict:
        headers = {"authorization": self.api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _post(self, path: str, **kwargs) -> dict:
        try:
            response = self.session.post(
                f"{self.base_url}/{path}", timeout=self.timeout_sec, **kwargs
            )
        except requests.RequestException as e:
            raise NetworkFailure("assemblyai", str(e))
        if not response.ok:
            raise NetworkFailure(
                "assemblyai", f"{path} failed: {response.status_code}", response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise TranscriptionFailure(f"Unreadable {path} response: {e}")

    def _field(self, data: dict, key: str) -> str:
        value = data.get(key) if isinstance(data, dict) else None
        if not value:
            raise TranscriptionFailure(f"AssemblyAI response missing {key!r}")
        return value

    def _upload(self, audio: bytes) -> str:
        data = self._post("upload", headers=self._headers("application/octet-stream"), data=audio)
        return self._field(data, "upload_url")

    def _request_transcript(self, upload_url: str) -> str:
        data = self._post(
            "transcript",
            headers=self._headers("application/json"),
            json={"audio_url": upload_url, "language_code": "en"},
        )
        return self._field(data, "id")

    def _poll(self, transcript_id: str) -> str:
        for attempt in range(self.max_polls):
            time.sleep(self.poll_interval_sec)
            try:
                response = self.session.get(
                    f"{self.base_url}/transcript/{transcript_id}",
                    headers=self._headers(),
                    timeout=self.timeout_sec,
                )
                result = response.json()
            except ValueError as e:
                raise TranscriptionFailure(f"Unreadable transcript status: {e}")
            except requests.RequestException as e:
                raise NetworkFailure("assemblyai", str(e))
            if not isinstance(result, dict):
                raise TranscriptionFailure("Unexpected transcript status response")

            status = result.get("status")
            logger.debug(f"Transcript {transcript_id} poll {attempt + 1}: {status}")
            if status == "completed":
                return (result.get("text") or "").strip()
            if status == "error":
                raise TranscriptionFailure(result.get("error") or "Transcription failed")

        raise TranscriptionFailure(f"Transcript {transcript_id} not ready after {self.max_polls} polls")
