from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_GEMINI_ROLES = {"user": "user", "assistant": "model"}


class LLMClient:
	def __init__(
		self,
		config: Optional[Settings] = None,
		*,
		api_key: Optional[str] = None,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		cfg = config or default_settings
		self.api_key = api_key or cfg.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or cfg.gemini_model
		self.provider = cfg.gemini_provider
		if self.provider == "vertex":
			region = cfg.vertex_region
			project = cfg.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		timeout = cfg.request_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(cfg.openrouter_api_key)
		self._openrouter_api_key = cfg.openrouter_api_key
		self._openrouter_model = cfg.openrouter_model
		self._openrouter_base_url = cfg.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": cfg.openrouter_referer,
			"X-Title": cfg.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def generate_json(
		self,
		system_prompt: str,
		messages: List[Dict[str, str]],
		*,
		temperature: float = 0.7,
	) -> str:
		"""Return the model's raw text for a conversation, asking for JSON output.

		``messages`` are ``{"role", "content"}`` dicts; system messages are folded
		into the system instruction since Gemini has no system role in contents.
		"""
		system_parts = [system_prompt] + [m["content"] for m in messages if m["role"] == "system"]
		system_text = "\n\n".join(p for p in system_parts if p)
		contents = [
			{"role": _GEMINI_ROLES[m["role"]], "parts": [{"text": m["content"]}]}
			for m in messages
			if m["role"] in _GEMINI_ROLES
		]
		if not contents:
			contents = [{"role": "user", "parts": [{"text": "Begin the conversation."}]}]
		payload: Dict[str, Any] = {
			"systemInstruction": {"parts": [{"text": system_text}]},
			"contents": contents,
			"generationConfig": {"temperature": temperature, "responseMimeType": "application/json"},
		}
		fallback_messages = [{"role": "system", "content": system_text}] + [
			{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"
		]
		return await self._post_payload(payload, fallback_messages=fallback_messages, temperature=temperature)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		fallback_messages: Optional[List[Dict[str, str]]],
		temperature: float,
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPError as err:
			last_error = err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (ValueError, KeyError, IndexError, TypeError):
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text[:200]}")
		if not self._fallback_enabled or fallback_messages is None:
			raise last_error
		logger.warning("Gemini call failed (%s); falling back to OpenRouter", type(last_error).__name__)
		return await self._fallback_generate(fallback_messages, temperature, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(
		self,
		messages: List[Dict[str, str]],
		temperature: float,
		primary_error: Optional[Exception],
	) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
			"temperature": temperature,
			"response_format": {"type": "json_object"},
		}
		r = await self._fallback_client.post(
			self._openrouter_base_url,
			headers=headers,
			json=payload,
		)
		r.raise_for_status()
		try:
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except (ValueError, KeyError, IndexError, TypeError) as fallback_err:
			raise RuntimeError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
