"""Routes for message playback, dictation, and lifespan lookup."""

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.audio_controller import (
	start_dictation,
	stop_audio,
	stop_dictation,
	toggle_message_audio,
	transcribe_upload,
)
from controllers.session_controller import lookup_lifespan

router = APIRouter()


class TranscribePayload(BaseModel):
	audio_base64: str
	mime_type: str = "audio/wav"


@router.post("/sessions/{session_id}/messages/{message_id}/audio")
async def toggle_audio_route(request: Request, session_id: str, message_id: str):
	try:
		return await toggle_message_audio(request, session_id, message_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/audio/stop")
async def stop_audio_route(request: Request):
	try:
		return await stop_audio(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/dictation/start")
async def start_dictation_route(request: Request):
	try:
		return await start_dictation(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/dictation/stop")
async def stop_dictation_route(request: Request):
	try:
		return await stop_dictation(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/dictation/transcribe")
async def transcribe_route(request: Request, payload: TranscribePayload):
	"""Transcribe audio the client recorded itself."""
	try:
		return await transcribe_upload(request, payload.audio_base64, payload.mime_type)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/lifespan")
async def lifespan_route(request: Request, character: str = Query(..., min_length=1)):
	try:
		return await lookup_lifespan(request, character)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
