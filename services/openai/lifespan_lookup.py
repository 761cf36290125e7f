"""Look up a historical figure's lifespan with a forced function call."""

import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from models.session_models import VOICE_GENDERS, Lifespan
from services.openai.prompts import lifespan_prompt
from services.openai.response_parser import parse_function_call

LOGGER = logging.getLogger(__name__)

FUNCTION_NAME = "report_lifespan"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": "Report the lifespan and gender of a historical figure.",
    "parameters": {
        "type": "object",
        "properties": {
            "known": {
                "type": "boolean",
                "description": "False when the figure is unknown or fictional.",
            },
            "birth_year": {"type": "integer", "description": "Birth year, negative for BC."},
            "death_year": {"type": "integer", "description": "Death year, or the current year if alive."},
            "gender": {"type": "string", "enum": list(VOICE_GENDERS)},
        },
        "required": ["known", "birth_year", "death_year", "gender"],
        "additionalProperties": False,
    },
    "strict": True,
}


class LifespanLookup:
    """Pre-seed a setup date and voice gender from a character name."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4.1-mini") -> None:
        if client is None:
            raise ValueError("OpenAI client is required for lifespan lookup.")
        self.client = client
        self.model = model

    async def lookup(self, character: str) -> Optional[Lifespan]:
        """Return the figure's lifespan, or None if unknown or on failure."""
        if not character or not character.strip():
            return None
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[
                    {
                        "type": "message",
                        "role": "user",
                        "content": [{"type": "input_text", "text": lifespan_prompt(character.strip())}],
                    }
                ],
                tools=[FUNCTION_DEFINITION],
                tool_choice={"type": "function", "name": FUNCTION_NAME},
            )
            args = parse_function_call(response, tool_name=FUNCTION_NAME)
        except Exception as exc:
            LOGGER.error("Error fetching lifespan: %s", exc)
            return None

        if not args.get("known"):
            return None
        try:
            return Lifespan(
                birth_year=int(args["birth_year"]),
                death_year=int(args["death_year"]),
                gender=args["gender"] if args.get("gender") in VOICE_GENDERS else "MALE",
            )
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.error("Incomplete lifespan output: %s", exc)
            return None
