"""Speech-to-text for WhatsApp voice notes (Groq Whisper endpoint).

Downloads the audio from the gateway URL and posts it as multipart to
Groq's OpenAI-compatible transcription API. Any failure is raised as
``TranscriptionError``; the conversation then asks for text instead.
"""

import logging

import httpx

from kimo.app.config import Settings, get_settings
from kimo.domain.errors import TranscriptionError

logger = logging.getLogger(__name__)

GROQ_TRANSCRIPTION_URL = "https://api.groq.com/openai/v1/audio/transcriptions"
DOWNLOAD_TIMEOUT_SECONDS = 20.0


class TranscriptionService:

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def _configured(self) -> bool:
        return bool(self.settings.groq_api_key)

    async def transcribe(self, audio_url: str) -> str:
        """Return the transcript text of the audio at ``audio_url``."""
        if not self._configured:
            raise TranscriptionError("groq_not_configured")

        try:
            async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT_SECONDS) as client:
                audio = await client.get(audio_url)
                audio.raise_for_status()

            async with httpx.AsyncClient(timeout=self.settings.transcription_timeout_seconds) as client:
                resp = await client.post(
                    GROQ_TRANSCRIPTION_URL,
                    headers={"Authorization": f"Bearer {self.settings.groq_api_key}"},
                    files={"file": ("audio.ogg", audio.content, "audio/ogg")},
                    data={
                        "model": self.settings.transcription_model,
                        "language": "pt",
                        "response_format": "json",
                    },
                )
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("Transcription timed out for %s", audio_url)
            raise TranscriptionError("timeout") from e
        except httpx.HTTPError as e:
            logger.error("Transcription request failed: %s", e)
            raise TranscriptionError(str(e)) from e

        try:
            text = (resp.json().get("text") or "").strip()
        except ValueError as e:
            raise TranscriptionError("invalid response body") from e
        if not text:
            raise TranscriptionError("empty transcript")
        logger.info("Transcribed %d chars from %s", len(text), audio_url)
        return text
