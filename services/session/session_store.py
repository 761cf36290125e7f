"""Owner of live sessions and their durable history."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from dal.session_dal import SessionDAL
from models.session_models import Message, PersonaConfig, Session

LOGGER = logging.getLogger(__name__)

PATCHABLE_FIELDS = frozenset(
	{"text", "scene_prompt", "location_context", "image_ref", "image_pending", "audio_payload"}
)


class SessionStore:
	"""Manage sessions, their ordered message logs, and persistence.

	Only this class mutates a session's message list. Persistence writes for
	one session are serialized, and a snapshot older than the last written
	one is dropped instead of overwriting newer state.
	"""

	def __init__(self, dal: SessionDAL) -> None:
		self.dal = dal
		self._sessions: Dict[str, Session] = {}
		self._locks: Dict[str, asyncio.Lock] = {}
		self._revisions: Dict[str, int] = {}
		self._written: Dict[str, int] = {}

	def create_session(self, config: PersonaConfig) -> str:
		"""Allocate a new in-memory session; nothing is stored until the first append."""
		session = Session(config=config)
		self._sessions[session.id] = session
		return session.id

	def get(self, session_id: str) -> Session:
		"""Return a live session or raise KeyError if missing."""
		session = self._sessions.get(session_id)
		if session is None:
			raise KeyError(f"Session {session_id} not found")
		return session

	def has(self, session_id: str) -> bool:
		return session_id in self._sessions

	def forget(self, session_id: str) -> None:
		"""Drop a session and its write bookkeeping from memory without touching storage."""
		self._sessions.pop(session_id, None)
		self._locks.pop(session_id, None)
		self._revisions.pop(session_id, None)
		self._written.pop(session_id, None)

	async def append_message(self, session_id: str, message: Message) -> Session:
		"""Append a message at the tail and persist."""
		session = self.get(session_id)
		session.messages.append(message)
		session.last_modified = time.time()
		await self.persist(session)
		return session

	async def patch_message(self, session_id: str, message_id: str, **changes: Any) -> Optional[Message]:
		"""Merge fields into a message found in the current list, then persist.

		Returns the updated message, or None when the session or message no
		longer exists.
		"""
		unknown = set(changes) - PATCHABLE_FIELDS
		if unknown:
			raise ValueError(f"Cannot patch message fields: {', '.join(sorted(unknown))}")
		session = self._sessions.get(session_id)
		if session is None:
			LOGGER.info("Patch for %s skipped; session %s is gone", message_id, session_id)
			return None
		message = session.find_message(message_id)
		if message is None:
			LOGGER.info("Patch skipped; message %s not in session %s", message_id, session_id)
			return None
		for key, value in changes.items():
			setattr(message, key, value)
		session.last_modified = time.time()
		await self.persist(session)
		return message

	async def persist(self, session: Session) -> bool:
		"""Write the session (audio stripped) to durable storage.

		Returns True if this snapshot was written. Only live sessions are
		written. Storage errors are logged and the session stays usable in
		memory.
		"""
		if self._sessions.get(session.id) is not session:
			LOGGER.info("Session %s was closed or deleted; skipping write", session.id)
			return False
		revision = self._revisions.get(session.id, 0) + 1
		self._revisions[session.id] = revision
		record = session.to_record()
		lock = self._locks.setdefault(session.id, asyncio.Lock())
		async with lock:
			if revision <= self._written.get(session.id, 0):
				LOGGER.debug("Dropping stale snapshot %d for session %s", revision, session.id)
				return False
			if self._sessions.get(session.id) is not session:
				LOGGER.info("Session %s was closed or deleted; skipping write", session.id)
				return False
			try:
				await self.dal.save_session(record)
			except Exception as exc:
				LOGGER.error("Failed to persist session %s: %s", session.id, exc)
				return False
			if self._sessions.get(session.id) is session:
				self._written[session.id] = revision
			return True

	async def read_session(self, session_id: str) -> Session:
		"""Return the stored copy of a session without making it live.

		Raises:
			KeyError: If no readable record exists.
		"""
		record = await self.dal.get_session(session_id)
		if record is None:
			raise KeyError(f"Session {session_id} not found")
		try:
			return Session.from_record(record)
		except (AttributeError, KeyError, TypeError, ValueError) as exc:
			LOGGER.error("Stored session %s is corrupt: %s", session_id, exc)
			raise KeyError(f"Session {session_id} not found") from exc

	async def load_session(self, session_id: str) -> Session:
		"""Load a stored session into memory (live copy wins if present)."""
		if session_id in self._sessions:
			return self._sessions[session_id]
		session = await self.read_session(session_id)
		self._sessions[session.id] = session
		return session

	async def list_sessions(self) -> List[Session]:
		"""Return stored sessions, newest first. Unreadable storage yields []."""
		try:
			records = await self.dal.list_sessions()
		except Exception as exc:
			LOGGER.error("Failed to load session history: %s", exc)
			return []
		sessions = []
		for record in records:
			try:
				sessions.append(Session.from_record(record))
			except (AttributeError, KeyError, TypeError, ValueError) as exc:
				LOGGER.error("Skipping corrupt session record: %s", exc)
		return sessions

	async def delete_session(self, session_id: str) -> bool:
		"""Remove one stored session and forget it in memory."""
		self.forget(session_id)
		return await self.dal.delete_session(session_id)
