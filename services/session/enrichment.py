"""Attach generated scene images to messages that are already on screen."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Set

from models.session_models import Message
from services.image_store import ImageStore
from services.openai.image_generator import ImageGenerator
from services.session.session_store import SessionStore

LOGGER = logging.getLogger(__name__)


class MediaEnrichmentOrchestrator:
	"""Request images out of band and merge results by message id.

	The target message is looked up in the session's current message list
	when the image arrives, so messages appended in the meantime are left
	untouched. A failed request is terminal for that message.
	"""

	def __init__(
		self,
		store: SessionStore,
		generator: ImageGenerator,
		image_store: ImageStore,
		timeout: Optional[float] = None,
	) -> None:
		self.store = store
		self.generator = generator
		self.image_store = image_store
		self.timeout = timeout
		self.current_visual: Optional[Message] = None
		self._tasks: Set[asyncio.Task] = set()

	def set_current_visual(self, message: Optional[Message]) -> None:
		"""Point the visual panel at a copy of `message`."""
		self.current_visual = message.copy() if message is not None else None

	def clear_visual(self) -> None:
		self.current_visual = None

	@staticmethod
	def latest_visual(messages: Iterable[Message]) -> Optional[Message]:
		"""Return the newest message that has an image or a scene prompt."""
		for message in reversed(list(messages)):
			if message.image_ref or message.scene_prompt:
				return message
		return None

	def schedule(self, session_id: str, message_id: str, scene_prompt: str) -> asyncio.Task:
		"""Start enrichment in the background and track the task."""
		task = asyncio.create_task(self.enrich(session_id, message_id, scene_prompt))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return task

	async def drain(self) -> None:
		"""Wait for every scheduled enrichment to finish."""
		while self._tasks:
			await asyncio.gather(*list(self._tasks), return_exceptions=True)

	async def enrich(self, session_id: str, message_id: str, scene_prompt: str) -> Optional[Message]:
		"""Generate an image for one message and merge the outcome.

		Returns the patched message, or None when the message no longer exists.
		"""
		image_ref = await self._generate(scene_prompt)
		if image_ref is None:
			LOGGER.info("No image for message %s; clearing pending state", message_id)

		updated = await self.store.patch_message(
			session_id, message_id, image_ref=image_ref, image_pending=False
		)

		visual = self.current_visual
		if visual is not None and visual.id == message_id:
			visual.image_ref = image_ref
			visual.image_pending = False
		return updated

	async def _generate(self, scene_prompt: str) -> Optional[str]:
		try:
			call = self.generator.generate(scene_prompt)
			image_b64 = await (asyncio.wait_for(call, self.timeout) if self.timeout else call)
		except asyncio.TimeoutError:
			LOGGER.warning("Image generation timed out after %ss", self.timeout)
			return None
		except Exception as exc:
			LOGGER.error("Image generation failed: %s", exc)
			return None
		if not image_b64:
			return None
		try:
			return await self.image_store.save_base64(image_b64)
		except (OSError, ValueError) as exc:
			LOGGER.error("Discarding generated image: %s", exc)
			return None
