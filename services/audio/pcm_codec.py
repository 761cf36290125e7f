"""Conversions between base64 PCM16 payloads, float samples, and WAV blobs."""

from __future__ import annotations

import base64
import binascii
import io
import wave

import numpy as np

PCM16_SCALE = 32768.0


def decode_pcm16(payload_b64: str) -> np.ndarray:
	"""Decode base64 little-endian signed 16-bit mono PCM into float32 samples in [-1.0, 1.0].

	Raises:
		ValueError: If the payload is not base64 or has an odd byte count.
	"""
	try:
		raw = base64.b64decode(payload_b64 or "", validate=True)
	except binascii.Error as exc:
		raise ValueError("Audio payload is not valid base64") from exc
	if len(raw) % 2:
		raise ValueError(f"PCM16 payload has an odd byte count ({len(raw)})")
	if not raw:
		return np.zeros(0, dtype=np.float32)
	samples = np.frombuffer(raw, dtype="<i2")
	return samples.astype(np.float32) / PCM16_SCALE


def encode_pcm16(samples) -> str:
	"""Encode 16-bit integer samples as base64 little-endian PCM."""
	data = np.asarray(samples, dtype="<i2")
	return base64.b64encode(data.tobytes()).decode("ascii")


def pcm16_to_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
	"""Wrap raw PCM16 bytes in a WAV container."""
	buffer = io.BytesIO()
	with wave.open(buffer, "wb") as wf:
		wf.setnchannels(channels)
		wf.setsampwidth(2)
		wf.setframerate(sample_rate)
		wf.writeframes(pcm)
	return buffer.getvalue()
