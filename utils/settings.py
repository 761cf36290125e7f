"""Environment-driven settings for the session engine.

Values are read once from the process environment (populated from `.env`
by `main.py`). Every field can be overridden by the matching variable:

    PLAYBACK_SAMPLE_RATE=24000
    REMOTE_TIMEOUT_SECONDS=60
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_float(key: str, default: Optional[float]) -> Optional[float]:
    """Get float from environment or return default."""
    val = os.environ.get(key)
    if val:
        try:
            return float(val)
        except ValueError:
            pass
    return default


def _env_int(key: str, default: int) -> int:
    """Get int from environment or return default."""
    val = os.environ.get(key)
    if val:
        try:
            return int(val)
        except ValueError:
            pass
    return default


def _env_str(key: str, default: str) -> str:
    """Get string from environment or return default."""
    val = os.environ.get(key)
    return val.strip() if val and val.strip() else default


@dataclass
class ModelSettings:
    """Remote model identifiers."""

    chat_model: str = field(default_factory=lambda: _env_str("CHAT_MODEL", "gpt-4.1-mini"))
    chat_temperature: float = field(default_factory=lambda: _env_float("CHAT_TEMPERATURE", 0.9))
    image_model: str = field(default_factory=lambda: _env_str("IMAGE_MODEL", "gpt-image-1"))
    tts_model: str = field(default_factory=lambda: _env_str("TTS_MODEL", "gpt-4o-mini-tts"))
    transcribe_model: str = field(default_factory=lambda: _env_str("TRANSCRIBE_MODEL", "gpt-4o-transcribe"))
    lifespan_model: str = field(default_factory=lambda: _env_str("LIFESPAN_MODEL", "gpt-4.1-mini"))


@dataclass
class AudioSettings:
    """Local playback and capture parameters."""

    playback_sample_rate: int = field(default_factory=lambda: _env_int("PLAYBACK_SAMPLE_RATE", 24000))
    capture_sample_rate: int = field(default_factory=lambda: _env_int("CAPTURE_SAMPLE_RATE", 16000))


@dataclass
class Settings:
    """Top-level settings container."""

    models: ModelSettings = field(default_factory=ModelSettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    history_namespace: str = field(default_factory=lambda: _env_str("HISTORY_NAMESPACE", "chronos_history_v1"))
    default_language: str = field(default_factory=lambda: _env_str("DEFAULT_LANGUAGE", "es"))
    # None means remote calls may hang indefinitely.
    remote_timeout: Optional[float] = field(default_factory=lambda: _env_float("REMOTE_TIMEOUT_SECONDS", None))
