from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..dependencies import get_tutor, guard_for
from ..guard import RequestGuard, client_id_for, failure_response
from ..schemas import TranslateRequest, translate_fallback
from ..tutor_service import TutorService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["translate"])


@router.post("/translate")
async def translate(
	req: TranslateRequest,
	request: Request,
	guard: RequestGuard = Depends(guard_for("translate")),
	tutor: TutorService = Depends(get_tutor),
):
	client_id = client_id_for(request)
	rejection = guard.admit(client_id)
	if rejection is not None:
		return rejection.to_response(translate_fallback())
	word = (req.word or "").strip()
	context = (req.context or "").strip()
	if not word or not context:
		raise HTTPException(status_code=400, detail="Word and context are required")
	cached = tutor.cached_translation(word, context)
	if cached is not None:
		return {"translation": cached.translation, "cached": True}
	logger.info("translation request client=%s word=%r", client_id, word)
	result = await guard.call(lambda: tutor.translate(word, context))
	if not result.ok:
		return failure_response(result, translate_fallback())
	data = {"translation": result.value.translation}
	if result.value.cached:
		data["cached"] = True
	return data
