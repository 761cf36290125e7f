"""Audio transcription helper built on OpenAI's transcription models."""

import base64
import binascii
import io
import logging
from typing import Optional

from openai import AsyncOpenAI

from utils.media_validation import normalize_mime_type, strip_data_url_prefix

TRANSCRIBE_MODEL = "gpt-4o-transcribe"

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "mp4",
    "audio/aac": "m4a",
    "audio/ogg": "oga",
    "audio/opus": "ogg",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
}


def filename_for_mime(mime_type: str) -> str:
    """Return an upload filename whose extension matches the MIME type.

    Raises:
        ValueError: If the MIME type is not an audio format the service accepts.
    """
    mime = normalize_mime_type(mime_type)
    if mime not in _EXTENSIONS:
        raise ValueError(f"Unsupported or unknown audio MIME type: '{mime_type}'")
    return f"dictation.{_EXTENSIONS[mime]}"


class DictationService:
    """Create text transcriptions from recorded speech."""

    def __init__(self, client: AsyncOpenAI, model: str = TRANSCRIBE_MODEL) -> None:
        """Initialize the service with a shared OpenAI client."""
        if client is None:
            raise ValueError("OpenAI client is required for dictation.")
        self.client = client
        self.model = model

    async def transcribe(self, audio_b64: str, mime_type: str = "audio/wav") -> Optional[str]:
        """Transcribe a base64 audio payload; return None when nothing was recognized.

        Raises:
            ValueError: If the payload is not base64 or the MIME type is unsupported.
        """
        try:
            audio_bytes = base64.b64decode(strip_data_url_prefix(audio_b64), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Audio payload must be base64.") from exc
        if not audio_bytes:
            raise ValueError("Audio payload must contain data for transcription.")

        audio_file = io.BytesIO(audio_bytes)
        audio_file.name = filename_for_mime(mime_type)

        try:
            response = await self.client.audio.transcriptions.create(
                model=self.model,
                file=audio_file,
            )
        except Exception as exc:
            logging.error("OpenAI transcription request failed: %s", exc)
            return None

        transcript = (getattr(response, "text", None) or "").strip()
        return transcript or None
