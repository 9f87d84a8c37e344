"""
IELTS Prep - Speech Transcription
Turns recorded speaking answers into text with OpenAI Whisper.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ieltsprep.core.config import settings
from ieltsprep.core.errors import TranscriptionFailed

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionResult:
    text: str
    duration_seconds: Optional[float] = None


class WhisperTranscriber:
    """
    Transcription service backed by the OpenAI audio API.

    The OpenAI client is created lazily so the app can boot without a key;
    a missing key surfaces as TranscriptionFailed on first use.
    """

    def __init__(self, model: str = None, language: str = None):
        self.model = model or settings.TRANSCRIPTION_MODEL
        self.language = language or settings.TRANSCRIPTION_LANGUAGE
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise TranscriptionFailed("Speech transcription service is not configured.")
            import openai
            self._client = openai.AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str = "audio/webm",
        filename: str = "audio.webm",
    ) -> TranscriptionResult:
        """
        Transcribe one audio recording.

        Raises:
            TranscriptionFailed: when the API errors or returns no speech
        """
        if not audio:
            raise TranscriptionFailed("No audio was recorded.")

        try:
            response = await self.client.audio.transcriptions.create(
                file=(filename, audio, mime_type),
                model=self.model,
                language=self.language,
                response_format="verbose_json",
            )
        except TranscriptionFailed:
            raise
        except Exception as e:
            logger.error(f"Transcription request failed: {e}")
            raise TranscriptionFailed(f"Speech transcription failed: {e}") from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise TranscriptionFailed()

        return TranscriptionResult(
            text=text,
            duration_seconds=getattr(response, "duration", None),
        )


# Default transcriber instance
_default_transcriber: Optional[WhisperTranscriber] = None


def get_transcriber() -> WhisperTranscriber:
    global _default_transcriber
    if _default_transcriber is None:
        _default_transcriber = WhisperTranscriber()
    return _default_transcriber
