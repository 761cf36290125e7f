"""Single-voice playback of synthesized PCM clips."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from services.audio.interface import STATE_CLOSED, STATE_SUSPENDED, AudioOutputContext, AudioSource
from services.audio.pcm_codec import decode_pcm16

LOGGER = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 24000


class PlaybackController:
	"""Own the audio output context and the one audible source.

	Starting a clip always tears the previous one down first, so at most one
	source is audible. Calling `play` for the message that is already playing
	stops it. The natural-completion callback is detached before any manual
	stop, so it can never clear the state of a newer clip.
	"""

	def __init__(
		self,
		context_factory: Callable[[int], AudioOutputContext],
		sample_rate: int = DEFAULT_SAMPLE_RATE,
	) -> None:
		self.context_factory = context_factory
		self.sample_rate = sample_rate
		self._context: Optional[AudioOutputContext] = None
		self._source: Optional[AudioSource] = None
		self._on_ended: Optional[Callable[[asyncio.Future], None]] = None
		self._active_id: Optional[str] = None
		self._generation = 0

	@property
	def active_message_id(self) -> Optional[str]:
		return self._active_id

	def _ensure_context(self) -> AudioOutputContext:
		if self._context is None or self._context.state == STATE_CLOSED:
			self._context = self.context_factory(self.sample_rate)
		return self._context

	async def play(self, payload: str, message_id: str) -> bool:
		"""Toggle playback of `payload` for `message_id`.

		Returns True if the clip is now playing. Errors are logged and leave
		nothing active.
		"""
		if self._active_id is not None and self._active_id == message_id:
			self.stop()
			return False

		self.stop()
		generation = self._generation
		try:
			context = self._ensure_context()
			if context.state == STATE_SUSPENDED:
				await context.resume()
			if generation != self._generation:
				# stopped or superseded while resuming
				return False
			samples = decode_pcm16(payload)
			source = context.create_source(samples)
			on_ended = lambda _fut, src=source: self._handle_ended(src)
			source.ended.add_done_callback(on_ended)
			self._source, self._on_ended, self._active_id = source, on_ended, message_id
			source.start()
		except Exception as exc:
			LOGGER.error("Audio playback error: %s", exc)
			self.stop()
			return False
		return True

	def _handle_ended(self, source: AudioSource) -> None:
		if self._source is not source:
			return
		self._source, self._on_ended, self._active_id = None, None, None
		try:
			source.disconnect()
		except Exception as exc:
			LOGGER.debug("Ignoring disconnect error after playback: %s", exc)

	def stop(self) -> None:
		"""Silence the active source. Safe to call when nothing is playing."""
		self._generation += 1
		source, on_ended = self._source, self._on_ended
		self._source, self._on_ended, self._active_id = None, None, None
		if source is None:
			return
		if on_ended is not None:
			source.ended.remove_done_callback(on_ended)
		for teardown in (source.stop, source.disconnect):
			try:
				teardown()
			except Exception as exc:
				LOGGER.debug("Ignoring teardown error: %s", exc)
		if not source.ended.done():
			source.ended.cancel()

	async def wait_finished(self) -> None:
		"""Wait until the current clip ends or is stopped."""
		source = self._source
		if source is not None:
			await asyncio.wait({source.ended})

	def dispose(self) -> None:
		"""Stop playback and release the output context."""
		self.stop()
		context, self._context = self._context, None
		if context is not None:
			try:
				context.close()
			except Exception as exc:
				LOGGER.debug("Ignoring context close error: %s", exc)
