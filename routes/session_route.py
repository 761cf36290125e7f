"""FastAPI routes for persona sessions."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.session_controller import (
	append_message,
	delete_session,
	exit_session,
	get_session,
	list_sessions,
	resume_session,
	start_session,
)
from models.session_models import PersonaConfig

router = APIRouter(prefix="/sessions")


class StartPayload(BaseModel):
	character: str
	era: str
	voice_gender: str = "MALE"
	language: Optional[str] = None


class MessagePayload(BaseModel):
	text: str


class ResumePayload(BaseModel):
	language: Optional[str] = None


def _language(request: Request, language: Optional[str]) -> str:
	if language:
		return language
	settings = getattr(request.app.state, "settings", None)
	return settings.default_language if settings is not None else "es"


@router.post("")
async def start_session_route(request: Request, payload: StartPayload):
	character = payload.character.strip()
	era = payload.era.strip()
	if not character or not era:
		raise HTTPException(status_code=400, detail="Character and era are required.")
	if payload.voice_gender not in ("MALE", "FEMALE"):
		raise HTTPException(status_code=400, detail="voice_gender must be MALE or FEMALE.")
	config = PersonaConfig(character=character, era=era, voice_gender=payload.voice_gender)
	try:
		return await start_session(request, config, _language(request, payload.language))
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("")
async def list_sessions_route(request: Request):
	try:
		return await list_sessions(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{session_id}")
async def get_session_route(request: Request, session_id: str):
	try:
		return await get_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{session_id}")
async def delete_session_route(request: Request, session_id: str):
	try:
		return await delete_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/resume")
async def resume_session_route(request: Request, session_id: str, payload: ResumePayload):
	try:
		return await resume_session(request, session_id, _language(request, payload.language))
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/messages")
async def post_message_route(request: Request, session_id: str, payload: MessagePayload):
	try:
		return await append_message(request, session_id, payload.text)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/exit")
async def exit_session_route(request: Request, session_id: str):
	try:
		return await exit_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
