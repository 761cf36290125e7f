"""sounddevice-backed audio output and microphone input.

sounddevice loads PortAudio when imported, so the import is deferred until a
device is actually needed. Code paths that never touch hardware (tests,
headless servers that only store history) therefore run without PortAudio.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from services.audio.interface import (
	STATE_CLOSED,
	STATE_RUNNING,
	STATE_SUSPENDED,
	AudioOutputContext,
	AudioSource,
)

LOGGER = logging.getLogger(__name__)


def _sounddevice():
	import sounddevice as sd

	return sd


class SoundDeviceSource(AudioSource):
	"""Stream one float32 buffer through a `sounddevice.OutputStream`."""

	def __init__(self, samples: np.ndarray, sample_rate: int, loop: asyncio.AbstractEventLoop) -> None:
		self._samples = np.ascontiguousarray(samples, dtype=np.float32)
		self._sample_rate = sample_rate
		self._position = 0
		self._loop = loop
		self._stream = None
		self.ended = loop.create_future()

	def _callback(self, outdata, frames, time_info, status) -> None:
		if status:
			LOGGER.debug("Output stream status: %s", status)
		chunk = self._samples[self._position:self._position + frames]
		outdata[:len(chunk), 0] = chunk
		self._position += len(chunk)
		if len(chunk) < frames:
			outdata[len(chunk):] = 0
			raise _sounddevice().CallbackStop

	def _finished(self) -> None:
		# PortAudio thread
		self._loop.call_soon_threadsafe(self._resolve)

	def _resolve(self) -> None:
		if not self.ended.done():
			self.ended.set_result(None)

	def start(self) -> None:
		sd = _sounddevice()
		self._stream = sd.OutputStream(
			samplerate=self._sample_rate,
			channels=1,
			dtype="float32",
			callback=self._callback,
			finished_callback=self._finished,
		)
		self._stream.start()

	def stop(self) -> None:
		if self._stream is not None:
			self._stream.abort()

	def disconnect(self) -> None:
		stream, self._stream = self._stream, None
		if stream is not None:
			stream.close()


class SoundDeviceOutputContext(AudioOutputContext):
	"""Default output device context.

	Starts suspended; `resume()` checks that an output device exists before
	any source is scheduled.
	"""

	def __init__(self, sample_rate: int) -> None:
		self.sample_rate = sample_rate
		self.state = STATE_SUSPENDED

	async def resume(self) -> None:
		if self.state == STATE_CLOSED:
			raise RuntimeError("Audio output context is closed")
		sd = _sounddevice()
		device = await asyncio.to_thread(sd.query_devices, kind="output")
		LOGGER.info("Audio output ready on %s", device.get("name") if isinstance(device, dict) else device)
		self.state = STATE_RUNNING

	def create_source(self, samples: np.ndarray) -> AudioSource:
		if self.state != STATE_RUNNING:
			raise RuntimeError(f"Audio output context is {self.state}")
		return SoundDeviceSource(samples, self.sample_rate, asyncio.get_running_loop())

	def close(self) -> None:
		self.state = STATE_CLOSED


class MicrophoneStream:
	"""Started `sounddevice.InputStream` delivering int16 mono chunks as bytes."""

	def __init__(self, sample_rate: int, on_chunk: Callable[[bytes], None], blocksize: int = 1024) -> None:
		sd = _sounddevice()
		self._on_chunk = on_chunk
		self._stream: Optional[object] = sd.InputStream(
			samplerate=sample_rate,
			channels=1,
			dtype="int16",
			blocksize=blocksize,
			callback=self._callback,
		)
		try:
			self._stream.start()
		except Exception:
			self._stream.close()
			self._stream = None
			raise

	def _callback(self, indata, frames, time_info, status) -> None:
		if status:
			LOGGER.debug("Input stream status: %s", status)
		self._on_chunk(indata.tobytes())

	def close(self) -> None:
		stream, self._stream = self._stream, None
		if stream is None:
			return
		try:
			stream.stop()
		finally:
			stream.close()


def open_microphone(sample_rate: int, on_chunk: Callable[[bytes], None]) -> MicrophoneStream:
	"""Open the default input device and start delivering chunks."""
	return MicrophoneStream(sample_rate, on_chunk)
