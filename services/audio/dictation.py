"""Glue between microphone capture and remote transcription."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from services.audio.capture import CAPTURE_MIME_TYPE, CaptureAdapter, CaptureHandle, CaptureStateError
from services.openai.dictation_service import DictationService

LOGGER = logging.getLogger(__name__)


class DictationSession:
	"""Record speech and turn it into text; capture always ends idle."""

	def __init__(self, capture: CaptureAdapter, transcriber: DictationService, timeout: Optional[float] = None) -> None:
		self.capture = capture
		self.transcriber = transcriber
		self.timeout = timeout

	def start(self) -> CaptureHandle:
		return self.capture.start_capture()

	async def stop(self) -> Optional[str]:
		"""Stop recording and return the transcript, or None if nothing was heard."""
		handle = self.capture.current_handle
		if handle is None:
			raise CaptureStateError("Dictation is not recording")
		# raises while a previous stop is still transcribing
		payload = self.capture.stop_capture(handle)
		try:
			if not handle.chunks:
				return None
			return await self.transcribe_payload(payload, CAPTURE_MIME_TYPE)
		finally:
			self.capture.finish_processing(handle)

	async def transcribe_payload(self, audio_b64: str, mime_type: str) -> Optional[str]:
		"""Transcribe an already encoded payload; failures are logged and yield None."""
		try:
			call = self.transcriber.transcribe(audio_b64, mime_type)
			return await (asyncio.wait_for(call, self.timeout) if self.timeout else call)
		except asyncio.TimeoutError:
			LOGGER.warning("Transcription timed out after %ss", self.timeout)
		except ValueError as exc:
			LOGGER.error("Rejected audio payload: %s", exc)
		return None
