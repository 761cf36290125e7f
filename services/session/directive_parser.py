"""Extract bracketed scene and context directives from persona replies.

A reply may carry, in any order and anywhere in the text:

    [[SCENE: prompt for the image model]]
    [[CONTEXT: Location | Date | Time]]

Both are removed from the displayed text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

SCENE_PATTERN = re.compile(r"\[\[SCENE:\s*(.*?)\]\]", re.DOTALL)
CONTEXT_PATTERN = re.compile(r"\[\[CONTEXT:\s*(.*?)\]\]", re.DOTALL)


@dataclass(frozen=True)
class ParsedReply:
	clean_text: str
	scene_prompt: Optional[str] = None
	location_context: Optional[str] = None


def _first(pattern: re.Pattern, text: str) -> Optional[str]:
	match = pattern.search(text)
	return match.group(1).strip() if match else None


def parse_reply(raw: Optional[str]) -> ParsedReply:
	"""Split a raw reply into display text and directive payloads.

	Missing directives come back as None; an empty directive comes back as "".
	"""
	text = raw or ""
	scene = _first(SCENE_PATTERN, text)
	context = _first(CONTEXT_PATTERN, text)
	clean = CONTEXT_PATTERN.sub("", SCENE_PATTERN.sub("", text)).strip()
	return ParsedReply(clean_text=clean, scene_prompt=scene, location_context=context)
