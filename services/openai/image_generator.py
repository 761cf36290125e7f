"""Scene image generation via the OpenAI Images API."""

import logging
from typing import Optional

from openai import AsyncOpenAI

from services.openai.prompts import enhance_scene_prompt

LOGGER = logging.getLogger(__name__)


class ImageGenerator:
    """Turn a scene prompt into base64 image data."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-image-1", size: str = "1024x1024") -> None:
        if client is None:
            raise ValueError("OpenAI client is required for image generation.")
        self.client = client
        self.model = model
        self.size = size

    async def generate(self, prompt: str) -> Optional[str]:
        """Return base64-encoded image bytes, or None when nothing was produced."""
        try:
            response = await self.client.images.generate(
                model=self.model,
                prompt=enhance_scene_prompt(prompt),
                size=self.size,
                n=1,
            )
        except Exception as exc:
            LOGGER.error("Error generating image: %s", exc)
            return None

        for item in getattr(response, "data", None) or []:
            data = getattr(item, "b64_json", None)
            if data:
                return data
        return None
