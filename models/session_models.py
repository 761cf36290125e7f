"""Session domain models for persona conversations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional
from uuid import uuid4

ROLE_USER = "user"
ROLE_PERSONA = "persona"
VOICE_GENDERS = ("MALE", "FEMALE")


def new_id() -> str:
	"""Return an opaque unique identifier."""
	return uuid4().hex


@dataclass
class Message:
	"""One entry of a conversation log.

	`image_pending` is True while a scene prompt awaits enrichment.
	`audio_payload` caches synthesized speech for this exact text and is
	never written to durable storage.
	"""

	role: str
	text: str
	id: str = field(default_factory=new_id)
	created_at: float = field(default_factory=lambda: time.time())
	scene_prompt: Optional[str] = None
	location_context: Optional[str] = None
	image_ref: Optional[str] = None
	image_pending: bool = False
	audio_payload: Optional[str] = None

	def copy(self) -> "Message":
		return replace(self)

	def to_record(self, include_audio: bool = False) -> Dict[str, Any]:
		"""Return a JSON-safe dict, omitting the audio payload unless asked."""
		record = {f.name: getattr(self, f.name) for f in fields(self)}
		if not include_audio:
			record.pop("audio_payload", None)
		return record

	@classmethod
	def from_record(cls, record: Dict[str, Any]) -> "Message":
		known = {f.name for f in fields(cls)}
		return cls(**{key: value for key, value in record.items() if key in known})


@dataclass
class PersonaConfig:
	"""Who the persona is and when the conversation takes place."""

	character: str
	era: str
	voice_gender: str = "MALE"

	def to_record(self) -> Dict[str, Any]:
		return {"character": self.character, "era": self.era, "voice_gender": self.voice_gender}

	@classmethod
	def from_record(cls, record: Dict[str, Any]) -> "PersonaConfig":
		gender = record.get("voice_gender") or "MALE"
		return cls(
			character=record.get("character", ""),
			era=record.get("era", ""),
			voice_gender=gender if gender in VOICE_GENDERS else "MALE",
		)


@dataclass
class Session:
	"""A conversation: persona configuration plus ordered message log."""

	config: PersonaConfig
	id: str = field(default_factory=new_id)
	messages: List[Message] = field(default_factory=list)
	last_modified: float = field(default_factory=lambda: time.time())

	def find_message(self, message_id: str) -> Optional[Message]:
		for message in self.messages:
			if message.id == message_id:
				return message
		return None

	def to_record(self) -> Dict[str, Any]:
		"""Return the durable form of the session (audio always stripped)."""
		return {
			"id": self.id,
			"config": self.config.to_record(),
			"messages": [message.to_record() for message in self.messages],
			"last_modified": self.last_modified,
		}

	@classmethod
	def from_record(cls, record: Dict[str, Any]) -> "Session":
		return cls(
			id=record["id"],
			config=PersonaConfig.from_record(record.get("config") or {}),
			messages=[Message.from_record(item) for item in record.get("messages") or []],
			last_modified=float(record.get("last_modified") or 0.0),
		)


@dataclass
class Lifespan:
	"""Birth and death years of a historical figure, plus voice gender."""

	birth_year: int
	death_year: int
	gender: str
