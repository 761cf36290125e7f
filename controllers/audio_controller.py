"""Controllers for voice playback and dictation."""

from typing import Any, Dict

from fastapi import HTTPException, Request

from controllers.session_controller import engine_from_request
from services.audio.capture import CaptureError, CaptureStateError
from services.audio.dictation import DictationSession
from utils.media_validation import require_audio_payload


def _dictation(request: Request) -> DictationSession:
    dictation = getattr(request.app.state, "dictation", None)
    if dictation is None:
        raise HTTPException(status_code=500, detail="Dictation unavailable")
    return dictation


async def toggle_message_audio(request: Request, session_id: str, message_id: str) -> Dict[str, Any]:
    """Play the voice clip of a message, or stop it if it is already playing."""
    engine = engine_from_request(request)
    try:
        playing = await engine.play_message_audio(session_id, message_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "message_id": message_id,
        "playing": playing,
        "playing_message_id": engine.playback.active_message_id,
    }


async def stop_audio(request: Request) -> Dict[str, Any]:
    engine = engine_from_request(request)
    engine.playback.stop()
    return {"playing_message_id": None}


async def start_dictation(request: Request) -> Dict[str, Any]:
    dictation = _dictation(request)
    try:
        handle = dictation.start()
    except CaptureStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except CaptureError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"capture_id": handle.id, "state": dictation.capture.state.value}


async def stop_dictation(request: Request) -> Dict[str, Any]:
    dictation = _dictation(request)
    try:
        text = await dictation.stop()
    except CaptureStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"text": text, "state": dictation.capture.state.value}


async def transcribe_upload(request: Request, audio_b64: str, mime_type: str) -> Dict[str, Any]:
    """Transcribe audio recorded by the client (base64 or data URL)."""
    dictation = _dictation(request)
    body, mime = require_audio_payload(audio_b64, mime_type)
    text = await dictation.transcribe_payload(body, mime)
    return {"text": text}
