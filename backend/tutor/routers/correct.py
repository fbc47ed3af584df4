from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..dependencies import get_tutor, guard_for
from ..guard import RequestGuard, client_id_for, failure_response
from ..schemas import CorrectRequest, MAX_MESSAGE_LENGTH, correct_fallback
from ..tutor_service import TutorService

router = APIRouter(tags=["grammar"])


@router.post("/correct")
async def correct(
	req: CorrectRequest,
	request: Request,
	guard: RequestGuard = Depends(guard_for("correct")),
	tutor: TutorService = Depends(get_tutor),
):
	text = (req.text or "").strip()
	rejection = guard.admit(client_id_for(request))
	if rejection is not None:
		return rejection.to_response(correct_fallback(text))
	if not text:
		raise HTTPException(status_code=400, detail="Text is required")
	if len(text) > MAX_MESSAGE_LENGTH:
		raise HTTPException(status_code=400, detail=f"Text cannot exceed {MAX_MESSAGE_LENGTH} characters")
	result = await guard.call(lambda: tutor.correct(text))
	if not result.ok:
		return failure_response(result, correct_fallback(text))
	return result.value.model_dump()
