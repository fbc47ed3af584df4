from __future__ import annotations

from typing import Callable

from fastapi import Request

from .guard import RequestGuard
from .prompts import TopicCatalogue
from .tutor_service import TutorService


def get_tutor(request: Request) -> TutorService:
	return request.app.state.tutor


def get_topics(request: Request) -> TopicCatalogue:
	return request.app.state.topics


def guard_for(name: str) -> Callable[[Request], RequestGuard]:
	def _get_guard(request: Request) -> RequestGuard:
		return request.app.state.guards[name]

	return _get_guard
