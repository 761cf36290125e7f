"""Validation helpers for inbound media payloads."""

import base64
import binascii
import re

from fastapi import HTTPException

ALLOWED_AUDIO_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
}

_DATA_URL_PREFIX = re.compile(r"^data:[^,]*?;base64,", re.IGNORECASE)


def strip_data_url_prefix(payload: str) -> str:
    """Return only the base64 body of a `data:<mime>;base64,` string."""
    return _DATA_URL_PREFIX.sub("", (payload or "").strip(), count=1)


def normalize_mime_type(mime_type: str | None) -> str:
    """Lower-case a MIME type and drop parameters such as `;codecs=opus`."""
    return (mime_type or "").lower().split(";", 1)[0].strip()


def require_audio_payload(audio_b64: str | None, mime_type: str | None) -> tuple[str, str]:
    """Validate a client-supplied base64 audio payload.

    Returns the stripped base64 body and the normalized MIME type.

    Raises:
        HTTPException: 400 for empty or non-base64 payloads, 415 for
            unsupported content types.
    """
    body = strip_data_url_prefix(audio_b64 or "")
    if not body:
        raise HTTPException(status_code=400, detail="Audio payload is required.")
    mime = normalize_mime_type(mime_type) or "audio/webm"
    if mime not in ALLOWED_AUDIO_TYPES:
        raise HTTPException(status_code=415, detail=f"Unsupported audio content type: {mime_type}")
    try:
        base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Audio payload must be base64.") from exc
    return body, mime
