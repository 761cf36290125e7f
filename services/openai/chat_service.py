"""Persona chat completion built on the OpenAI Responses API."""

import logging
from typing import Dict, Iterable, List, Optional

from openai import AsyncOpenAI

from models.session_models import ROLE_USER, Message
from services.openai.prompts import persona_system_prompt
from services.openai.response_parser import extract_text

LOGGER = logging.getLogger(__name__)


class PersonaChatService:
    """Hold one persona dialogue and exchange turns with the model."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4.1-mini", temperature: float = 0.9) -> None:
        if client is None:
            raise ValueError("OpenAI client is required for chat.")
        self.client = client
        self.model = model
        self.temperature = temperature
        self.system_prompt: Optional[str] = None
        self.history: List[Dict[str, str]] = []

    def initialize(self, character: str, era: str, language: str, history: Iterable[Message] = ()) -> None:
        """Start a fresh dialogue, optionally seeded with an earlier transcript."""
        self.system_prompt = persona_system_prompt(character, era, language)
        self.history = [
            {"role": "user" if msg.role == ROLE_USER else "assistant", "content": msg.text}
            for msg in history
            if msg.text
        ]

    async def send_turn(self, text: str) -> str:
        """Send one user turn and return the raw reply text.

        The turn is only added to the dialogue once the model answers, so a
        failed call can simply be retried.
        """
        if self.system_prompt is None:
            raise RuntimeError("Chat not initialized")

        turn = {"role": "user", "content": text}
        try:
            response = await self.client.responses.create(
                model=self.model,
                instructions=self.system_prompt,
                input=[*self.history, turn],
                temperature=self.temperature,
            )
        except Exception as exc:
            LOGGER.error("Error sending message: %s", exc)
            raise

        reply = extract_text(response)
        self.history.extend([turn, {"role": "assistant", "content": reply}])
        return reply
