"""Text-to-speech producing raw 24 kHz PCM16 clips."""

import base64
import logging
from typing import Optional

from openai import AsyncOpenAI

LOGGER = logging.getLogger(__name__)

VOICE_BY_GENDER = {"MALE": "onyx", "FEMALE": "nova"}


class SpeechSynthesizer:
    """Synthesize persona speech as base64 little-endian PCM16, mono."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini-tts") -> None:
        if client is None:
            raise ValueError("OpenAI client is required for speech synthesis.")
        self.client = client
        self.model = model

    async def synthesize(self, text: str, voice_gender: str = "MALE") -> Optional[str]:
        """Return the clip as base64 text, or None on failure."""
        if not text or not text.strip():
            return None
        voice = VOICE_BY_GENDER.get(voice_gender, VOICE_BY_GENDER["MALE"])
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice,
                input=text,
                response_format="pcm",
            )
            audio = response.content
        except Exception as exc:
            LOGGER.error("Error generating speech: %s", exc)
            return None
        if not audio:
            return None
        return base64.b64encode(audio).decode("ascii")
