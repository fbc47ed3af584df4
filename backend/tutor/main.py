from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request

from .circuit_breaker import CircuitBreaker
from .guard import RequestGuard
from .llm_client import LLMClient
from .prompts import TopicCatalogue
from .rate_limiter import SlidingWindowRateLimiter
from .routers import chat, correct, health, topics, translate
from .settings import Settings, settings as default_settings
from .tutor_service import TutorService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
	logging.basicConfig(
		level=getattr(logging, level.upper(), logging.INFO),
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
	)


def build_guards(
	config: Settings,
	clock: Callable[[], float] = time.monotonic,
) -> dict[str, RequestGuard]:
	# One breaker for the one upstream; each endpoint gets its own quota
	breaker = CircuitBreaker(
		failure_threshold=config.breaker_failure_threshold,
		reset_timeout_seconds=config.reset_timeout_seconds,
		clock=clock,
	)
	quotas = {
		"chat": config.chat_max_requests,
		"correct": config.correct_max_requests,
		"translate": config.translate_max_requests,
	}
	guards = {}
	for name, max_requests in quotas.items():
		limiter = SlidingWindowRateLimiter(
			max_requests,
			config.window_seconds,
			max_clients=config.rate_limit_max_clients,
			entry_ttl_seconds=config.entry_ttl_seconds,
			clock=clock,
			name=name,
		)
		guards[name] = RequestGuard(
			limiter,
			breaker,
			timeout_seconds=config.request_timeout_seconds,
			count_malformed_as_failure=config.count_malformed_as_failure,
		)
	return guards


def create_app(
	config: Optional[Settings] = None,
	*,
	tutor: Optional[TutorService] = None,
	clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
	config = config or default_settings
	configure_logging(config.log_level)

	app = FastAPI(title="Dutch Conversation Tutor API")
	app.state.settings = config
	app.state.guards = build_guards(config, clock)
	app.state.topics = TopicCatalogue(config.prompts_dir)
	app.state.tutor = tutor or TutorService(
		lambda: LLMClient(config),
		translation_cache_size=config.translation_cache_size,
	)

	app.include_router(health.router)
	app.include_router(topics.router)
	app.include_router(chat.router)
	app.include_router(correct.router)
	app.include_router(translate.router)

	@app.get("/info")
	def info(request: Request):
		breaker = next(iter(request.app.state.guards.values())).breaker
		return {
			"status": "ok",
			"llm_configured": bool(config.gemini_api_key),
			"breaker_open": breaker.is_open(),
		}

	@app.on_event("shutdown")
	async def shutdown_event():
		await app.state.tutor.aclose()

	logger.info("app ready; prompts from %s", config.prompts_dir)
	return app


app = create_app()
