"""
Audio output abstractions used by the playback controller.

An `AudioOutputContext` is created lazily, may start out suspended, and
hands out `AudioSource` objects that each play one buffer of samples.
A source reports natural completion by resolving its `ended` future.

Concrete implementations live in `services/audio/devices.py`; tests supply
in-memory fakes.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import numpy as np

STATE_SUSPENDED = "suspended"
STATE_RUNNING = "running"
STATE_CLOSED = "closed"


class AudioSource(ABC):
	"""One playable buffer."""

	ended: asyncio.Future

	@abstractmethod
	def start(self) -> None:
		"""Begin playback."""

	@abstractmethod
	def stop(self) -> None:
		"""Halt playback immediately."""

	@abstractmethod
	def disconnect(self) -> None:
		"""Release the output resources held by this source."""


class AudioOutputContext(ABC):
	"""Process-wide audio output."""

	state: str = STATE_SUSPENDED

	@abstractmethod
	async def resume(self) -> None:
		"""Move a suspended context to running."""

	@abstractmethod
	def create_source(self, samples: np.ndarray) -> AudioSource:
		"""Return a source for mono float32 samples at the context's rate."""

	@abstractmethod
	def close(self) -> None:
		"""Release the context."""
