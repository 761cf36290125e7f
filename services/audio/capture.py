"""Microphone capture producing transportable base64 WAV payloads."""

from __future__ import annotations

import base64
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional
from uuid import uuid4

from services.audio.pcm_codec import pcm16_to_wav

LOGGER = logging.getLogger(__name__)

CAPTURE_MIME_TYPE = "audio/wav"


class CaptureError(RuntimeError):
	"""The microphone could not be opened (missing device or permission refused)."""


class CaptureStateError(RuntimeError):
	"""A capture operation was called in the wrong state."""


class CaptureState(str, Enum):
	IDLE = "idle"
	RECORDING = "recording"
	PROCESSING = "processing"


@dataclass
class CaptureHandle:
	"""One recording: chunks are kept in arrival order."""

	sample_rate: int
	id: str = field(default_factory=lambda: uuid4().hex)
	started_at: float = field(default_factory=lambda: time.time())
	chunks: List[bytes] = field(default_factory=list)
	_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

	def add_chunk(self, chunk: bytes) -> None:
		# called from the audio thread
		with self._lock:
			self.chunks.append(bytes(chunk))

	def take_pcm(self) -> bytes:
		with self._lock:
			return b"".join(self.chunks)


class CaptureAdapter:
	"""Exclusive microphone capture: idle -> recording -> (idle | processing) -> idle.

	`stream_factory(sample_rate, on_chunk)` must return an already started
	stream object exposing `close()`.
	"""

	def __init__(self, stream_factory: Callable, sample_rate: int = 16000) -> None:
		self.stream_factory = stream_factory
		self.sample_rate = sample_rate
		self._state = CaptureState.IDLE
		self._handle: Optional[CaptureHandle] = None
		self._stream = None

	@property
	def state(self) -> CaptureState:
		return self._state

	@property
	def current_handle(self) -> Optional[CaptureHandle]:
		return self._handle

	def start_capture(self) -> CaptureHandle:
		"""Open the microphone and begin buffering.

		Raises:
			CaptureStateError: If a capture is already open or being processed.
			CaptureError: If the device cannot be opened; state stays idle.
		"""
		if self._state is not CaptureState.IDLE:
			raise CaptureStateError(f"Cannot start capture while {self._state.value}")
		handle = CaptureHandle(sample_rate=self.sample_rate)
		try:
			stream = self.stream_factory(self.sample_rate, handle.add_chunk)
		except Exception as exc:
			LOGGER.error("Microphone unavailable: %s", exc)
			raise CaptureError(f"Microphone unavailable: {exc}") from exc
		self._stream, self._handle = stream, handle
		self._state = CaptureState.RECORDING
		return handle

	def stop_capture(self, handle: CaptureHandle) -> str:
		"""Release the microphone and return the recording as base64 WAV.

		The device is closed before the payload is built. State moves to
		processing until `finish_processing()` is called.
		"""
		if self._state is not CaptureState.RECORDING or handle is not self._handle:
			raise CaptureStateError("No matching capture is recording")
		self._release()
		self._state = CaptureState.PROCESSING
		wav = pcm16_to_wav(handle.take_pcm(), handle.sample_rate)
		return base64.b64encode(wav).decode("ascii")

	def finish_processing(self, handle: Optional[CaptureHandle] = None) -> None:
		"""Return to idle once the payload has been handed off.

		When `handle` is given and is no longer the current capture, nothing
		changes.
		"""
		if handle is not None and handle is not self._handle:
			return
		self._handle = None
		self._state = CaptureState.IDLE

	def cancel(self) -> None:
		"""Discard any capture in progress and return to idle."""
		self._release()
		self.finish_processing()

	def _release(self) -> None:
		stream, self._stream = self._stream, None
		if stream is None:
			return
		try:
			stream.close()
		except Exception as exc:
			LOGGER.warning("Error while releasing microphone: %s", exc)
