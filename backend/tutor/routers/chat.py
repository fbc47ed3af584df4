from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..dependencies import get_topics, get_tutor, guard_for
from ..guard import RequestGuard, client_id_for, failure_response
from ..prompts import TopicCatalogue, TopicNotFoundError
from ..schemas import ChatRequest, chat_fallback
from ..tutor_service import TutorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_REPEAT_SUGGESTIONS = [
	{"dutch": "Hallo, hoe gaat het?", "english": "Hello, how are you?"},
	{"dutch": "Wat is het weer vandaag?", "english": "What's the weather like today?"},
	{"dutch": "Kunt u me helpen?", "english": "Can you help me?"},
]

_TOPIC_SUGGESTIONS = [
	{"dutch": "Probeer een ander onderwerp", "english": "Try a different topic"},
	{"dutch": "Ga terug naar het hoofdmenu", "english": "Go back to the main menu"},
	{"dutch": "Neem contact op met ondersteuning", "english": "Contact support"},
]


@router.post("/{topic}")
async def chat(
	topic: str,
	request: Request,
	guard: RequestGuard = Depends(guard_for("chat")),
	topics: TopicCatalogue = Depends(get_topics),
	tutor: TutorService = Depends(get_tutor),
):
	client_id = client_id_for(request)
	rejection = guard.admit(client_id)
	if rejection is not None:
		return rejection.to_response(chat_fallback())

	try:
		payload = await request.json()
		body = ChatRequest.model_validate(payload)
	except (ValueError, ValidationError) as exc:
		logger.info("rejected chat request for topic=%s: %s", topic, exc)
		content = chat_fallback(
			ai_reply="Please provide a message to continue the conversation.",
			translation="Geef alstublieft een bericht op om het gesprek voort te zetten.",
			suggestions=_REPEAT_SUGGESTIONS,
		)
		content["error"] = "No messages or user input provided"
		return JSONResponse(content, status_code=400)

	try:
		config = topics.load(topic)
	except TopicNotFoundError:
		content = chat_fallback(
			ai_reply="Sorry, I encountered an error loading the conversation topic.",
			translation="Het spijt me, er is een fout opgetreden bij het laden van het gespreksonderwerp.",
			suggestions=_TOPIC_SUGGESTIONS,
		)
		content["error"] = "Failed to load prompt configuration"
		return JSONResponse(content, status_code=404)

	logger.info("chat request client=%s topic=%s messages=%d", client_id, config.slug, len(body.messages))
	result = await guard.call(lambda: tutor.reply(config, body.messages, body.user_input))
	if not result.ok:
		return failure_response(result, chat_fallback())
	return result.value.model_dump()
