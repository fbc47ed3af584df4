from __future__ import annotations
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

PACKAGE_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="openai/gpt-4o-mini", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Dutch Conversation Tutor", validation_alias="OPENROUTER_TITLE")

	# Sliding-window rate limiting, one quota per endpoint
	rate_limit_window_ms: int = Field(default=60_000, gt=0, validation_alias="RATE_LIMIT_WINDOW_MS")
	rate_limit_max_clients: int = Field(default=1000, gt=0, validation_alias="RATE_LIMIT_MAX_CLIENTS")
	# Per-entry expiry; falls back to the window length
	rate_limit_entry_ttl_ms: int | None = Field(default=None, gt=0, validation_alias="RATE_LIMIT_ENTRY_TTL_MS")
	chat_max_requests: int = Field(default=20, gt=0, validation_alias="CHAT_MAX_REQUESTS")
	correct_max_requests: int = Field(default=10, gt=0, validation_alias="CORRECT_MAX_REQUESTS")
	translate_max_requests: int = Field(default=30, gt=0, validation_alias="TRANSLATE_MAX_REQUESTS")

	# Circuit breaker in front of the language model
	breaker_failure_threshold: int = Field(default=5, gt=0, validation_alias="BREAKER_FAILURE_THRESHOLD")
	breaker_reset_timeout_ms: int = Field(default=30_000, gt=0, validation_alias="BREAKER_RESET_TIMEOUT_MS")
	request_timeout_ms: int = Field(default=30_000, gt=0, validation_alias="REQUEST_TIMEOUT_MS")
	count_malformed_as_failure: bool = Field(default=False, validation_alias="COUNT_MALFORMED_AS_FAILURE")

	translation_cache_size: int = Field(default=500, ge=0, validation_alias="TRANSLATION_CACHE_SIZE")
	prompts_dir: Path = Field(default=PACKAGE_PROMPTS_DIR, validation_alias="PROMPTS_DIR")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

	@property
	def window_seconds(self) -> float:
		return self.rate_limit_window_ms / 1000

	@property
	def entry_ttl_seconds(self) -> float:
		return (self.rate_limit_entry_ttl_ms or self.rate_limit_window_ms) / 1000

	@property
	def reset_timeout_seconds(self) -> float:
		return self.breaker_reset_timeout_ms / 1000

	@property
	def request_timeout_seconds(self) -> float:
		return self.request_timeout_ms / 1000


settings = Settings()
