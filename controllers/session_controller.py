"""Session lifecycle helpers for persona conversations."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from models.session_models import Message, PersonaConfig, Session
from services.session.conversation import ConversationEngine, SessionInitError


def engine_from_request(request: Request) -> ConversationEngine:
	engine = getattr(request.app.state, "engine", None)
	if engine is None:
		raise HTTPException(status_code=500, detail="Conversation engine unavailable")
	return engine


def message_view(message: Message) -> Dict[str, Any]:
	"""Public form of a message; audio is reported as a flag, not shipped inline."""
	view = message.to_record()
	view["has_audio"] = bool(message.audio_payload)
	return view


def session_view(session: Session, engine: Optional[ConversationEngine] = None) -> Dict[str, Any]:
	view = {
		"session_id": session.id,
		"config": session.config.to_record(),
		"messages": [message_view(msg) for msg in session.messages],
		"last_modified": session.last_modified,
	}
	if engine is not None and engine.current_session_id == session.id:
		visual = engine.current_visual
		view["current_visual"] = message_view(visual) if visual is not None else None
		view["playing_message_id"] = engine.playback.active_message_id
	return view


async def start_session(request: Request, config: PersonaConfig, language: str) -> Dict[str, Any]:
	"""Create a new session and return it with the persona's greeting."""
	engine = engine_from_request(request)
	try:
		session = await engine.start_session(config, language)
	except SessionInitError as exc:
		raise HTTPException(status_code=503, detail=str(exc)) from exc
	return session_view(session, engine)


async def resume_session(request: Request, session_id: str, language: str) -> Dict[str, Any]:
	engine = engine_from_request(request)
	try:
		session = await engine.resume_session(session_id, language)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	except SessionInitError as exc:
		raise HTTPException(status_code=503, detail=str(exc)) from exc
	return session_view(session, engine)


async def get_session(request: Request, session_id: str) -> Dict[str, Any]:
	engine = engine_from_request(request)
	try:
		session = engine.store.get(session_id)
	except KeyError:
		# stored sessions are read, not reopened
		try:
			session = await engine.store.read_session(session_id)
		except KeyError as exc:
			raise HTTPException(status_code=404, detail=str(exc)) from exc
	return session_view(session, engine)


async def append_message(request: Request, session_id: str, text: str) -> Dict[str, Any]:
	"""Send a user turn and return the persona's reply, if any."""
	engine = engine_from_request(request)
	try:
		reply = await engine.send_message(session_id, text)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	return {
		"session_id": session_id,
		"ok": reply is not None,
		"reply": message_view(reply) if reply is not None else None,
		"message_count": len(engine.store.get(session_id).messages) if engine.store.has(session_id) else 0,
	}


async def exit_session(request: Request, session_id: str) -> Dict[str, Any]:
	engine = engine_from_request(request)
	if engine.current_session_id == session_id:
		engine.exit_session()
	return {"session_id": session_id, "closed": True}


async def list_sessions(request: Request) -> Dict[str, Any]:
	engine = engine_from_request(request)
	sessions = await engine.list_sessions()
	return {
		"sessions": [
			{
				"session_id": session.id,
				"config": session.config.to_record(),
				"message_count": len(session.messages),
				"last_modified": session.last_modified,
			}
			for session in sessions
		]
	}


async def delete_session(request: Request, session_id: str) -> Dict[str, Any]:
	engine = engine_from_request(request)
	deleted = await engine.delete_session(session_id)
	if not deleted:
		raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
	return {"session_id": session_id, "deleted": True}


async def lookup_lifespan(request: Request, character: str) -> Dict[str, Any]:
	engine = engine_from_request(request)
	lifespan = await engine.lookup_lifespan(character)
	if lifespan is None:
		return {"character": character, "found": False}
	return {
		"character": character,
		"found": True,
		"birth_year": lifespan.birth_year,
		"death_year": lifespan.death_year,
		"gender": lifespan.gender,
	}
