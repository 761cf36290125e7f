"""Turn handling for persona conversations.

`ConversationEngine` sequences one dialogue: user turns go into the
session store first, the persona reply is parsed for directives, appended,
and any scene is handed to the enrichment orchestrator without waiting for
it. Playback is user-triggered and addressed by message id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, TypeVar

from models.session_models import ROLE_PERSONA, ROLE_USER, Lifespan, Message, PersonaConfig, Session
from services.audio.playback import PlaybackController
from services.openai.chat_service import PersonaChatService
from services.openai.lifespan_lookup import LifespanLookup
from services.openai.prompts import greeting_prompt
from services.openai.speech_synthesizer import SpeechSynthesizer
from services.session.directive_parser import parse_reply
from services.session.enrichment import MediaEnrichmentOrchestrator
from services.session.session_store import SessionStore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class SessionInitError(RuntimeError):
	"""The persona backend could not be initialized for a new or resumed session."""


class ConversationEngine:
	"""Coordinate the store, chat backend, enrichment, and playback."""

	def __init__(
		self,
		store: SessionStore,
		chat: PersonaChatService,
		enrichment: MediaEnrichmentOrchestrator,
		speech: SpeechSynthesizer,
		playback: PlaybackController,
		lifespan: Optional[LifespanLookup] = None,
		timeout: Optional[float] = None,
	) -> None:
		self.store = store
		self.chat = chat
		self.enrichment = enrichment
		self.speech = speech
		self.playback = playback
		self.lifespan = lifespan
		self.timeout = timeout
		self.current_session_id: Optional[str] = None
		self.audio_loading_id: Optional[str] = None

	@property
	def current_visual(self) -> Optional[Message]:
		return self.enrichment.current_visual

	async def _remote(self, call: Awaitable[T]) -> T:
		if self.timeout:
			return await asyncio.wait_for(call, self.timeout)
		return await call

	def _persona_message(self, raw_reply: str) -> Message:
		parsed = parse_reply(raw_reply)
		# an empty directive carries nothing to render
		scene = parsed.scene_prompt or None
		return Message(
			role=ROLE_PERSONA,
			text=parsed.clean_text,
			scene_prompt=scene,
			location_context=parsed.location_context or None,
			image_pending=scene is not None,
		)

	async def _accept_reply(self, session_id: str, raw_reply: str) -> Message:
		message = self._persona_message(raw_reply)
		await self.store.append_message(session_id, message)
		if message.scene_prompt is not None:
			self.enrichment.set_current_visual(message)
			self.enrichment.schedule(session_id, message.id, message.scene_prompt)
		return message

	async def start_session(self, config: PersonaConfig, language: str) -> Session:
		"""Create a session and fetch the persona's opening reaction.

		Raises:
			SessionInitError: If the backend cannot be reached or initialized.
		"""
		self.exit_session()
		session_id = self.store.create_session(config)
		self.current_session_id = session_id
		try:
			self.chat.initialize(config.character, config.era, language)
			raw_reply = await self._remote(self.chat.send_turn(greeting_prompt(config.character, config.era)))
		except Exception as exc:
			LOGGER.error("Failed to start session: %s", exc)
			self.store.forget(session_id)
			self.current_session_id = None
			raise SessionInitError(f"Failed to start session: {exc}") from exc

		message = await self._accept_reply(session_id, raw_reply)
		if message.scene_prompt is None:
			self.enrichment.set_current_visual(message)
		return self.store.get(session_id)

	async def send_message(self, session_id: str, text: str) -> Optional[Message]:
		"""Send one user turn; return the persona reply or None if the turn failed.

		The user message is kept either way so the user can simply send again.

		Raises:
			KeyError: If `session_id` is not the active session.
		"""
		text = (text or "").strip()
		if not text:
			raise ValueError("Message text is required.")
		if session_id != self.current_session_id:
			raise KeyError(f"Session {session_id} is not the active session")
		self.playback.stop()
		await self.store.append_message(session_id, Message(role=ROLE_USER, text=text))
		try:
			raw_reply = await self._remote(self.chat.send_turn(text))
		except Exception as exc:
			LOGGER.error("Error exchanging messages: %s", exc)
			return None
		if session_id != self.current_session_id or not self.store.has(session_id):
			LOGGER.info("Discarding reply for inactive session %s", session_id)
			return None
		return await self._accept_reply(session_id, raw_reply)

	async def resume_session(self, session_id: str, language: str) -> Session:
		"""Load a stored session and re-open the persona dialogue with its transcript.

		Scene images that were still pending when the session was closed are
		requested again.

		Raises:
			KeyError: If the session is not stored or cannot be read.
			SessionInitError: If the persona backend cannot be initialized.
		"""
		if session_id != self.current_session_id:
			self.exit_session()
		self.playback.stop()
		reopened = not self.store.has(session_id)
		session = await self.store.load_session(session_id)
		try:
			self.chat.initialize(session.config.character, session.config.era, language, history=session.messages)
		except Exception as exc:
			LOGGER.error("Failed to resume session %s: %s", session_id, exc)
			self.store.forget(session_id)
			self.current_session_id = None
			self.enrichment.clear_visual()
			raise SessionInitError(f"Failed to resume session: {exc}") from exc
		self.current_session_id = session.id
		if reopened:
			await self._reschedule_pending(session)
		self.enrichment.set_current_visual(self.enrichment.latest_visual(session.messages))
		return session

	async def _reschedule_pending(self, session: Session) -> None:
		stale = False
		for message in session.messages:
			if not message.image_pending or message.image_ref:
				continue
			if message.scene_prompt:
				self.enrichment.schedule(session.id, message.id, message.scene_prompt)
			else:
				message.image_pending = False
				stale = True
		if stale:
			await self.store.persist(session)

	def exit_session(self) -> None:
		"""Leave the current session; late replies and images for it are dropped."""
		self.playback.stop()
		if self.current_session_id is not None:
			self.store.forget(self.current_session_id)
		self.current_session_id = None
		self.enrichment.clear_visual()

	async def play_message_audio(self, session_id: str, message_id: str) -> bool:
		"""Toggle the voice clip of one message; returns True if it is now playing."""
		if self.playback.active_message_id == message_id:
			self.playback.stop()
			return False
		if self.audio_loading_id == message_id:
			LOGGER.debug("Audio for %s is already loading", message_id)
			return False
		self.playback.stop()

		message = self.store.get(session_id).find_message(message_id)
		if message is None:
			raise KeyError(f"Message {message_id} not found")

		payload = message.audio_payload
		if not payload:
			config = self.store.get(session_id).config
			self.audio_loading_id = message_id
			try:
				payload = await self._remote(self.speech.synthesize(message.text, config.voice_gender))
			except asyncio.TimeoutError:
				LOGGER.warning("Speech synthesis timed out for %s", message_id)
				payload = None
			finally:
				if self.audio_loading_id == message_id:
					self.audio_loading_id = None
			if not payload:
				return False
			await self.store.patch_message(session_id, message_id, audio_payload=payload)
		return await self.playback.play(payload, message_id)

	async def list_sessions(self) -> List[Session]:
		return await self.store.list_sessions()

	async def delete_session(self, session_id: str) -> bool:
		if session_id == self.current_session_id:
			self.exit_session()
		return await self.store.delete_session(session_id)

	async def lookup_lifespan(self, character: str) -> Optional[Lifespan]:
		if self.lifespan is None:
			return None
		try:
			return await self._remote(self.lifespan.lookup(character))
		except asyncio.TimeoutError:
			LOGGER.warning("Lifespan lookup timed out for %s", character)
			return None

	async def close(self) -> None:
		"""Stop audio and wait for outstanding enrichment."""
		self.playback.dispose()
		await self.enrichment.drain()
