from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from .llm_client import LLMClient
from .prompts import TopicConfig, render_prompt
from .schemas import (
	ChatMessage,
	ChatReply,
	GrammarCorrection,
	WordTranslation,
	parse_reply,
)

logger = logging.getLogger(__name__)

CHAT_REPLY_CONTRACT = """
Always respond with ONE JSON object and nothing else, with these keys:
{
  "ai_reply": "Your reply in Dutch",
  "translation": "English translation of your reply",
  "correction": {
    "correctedDutch": "Corrected Dutch sentence if the learner made a mistake, else an empty string",
    "explanation": "Brief English explanation of the correction, else an empty string"
  },
  "suggestions": [
    {"dutch": "Suggestion 1 in Dutch", "english": "English translation"},
    {"dutch": "Suggestion 2 in Dutch", "english": "English translation"},
    {"dutch": "Suggestion 3 in Dutch", "english": "English translation"}
  ],
  "new_words": [
    {"dutch": "word from your reply", "english": "its meaning",
     "dutch_sentence": "the sentence it appeared in", "english_sentence": "that sentence in English"}
  ]
}
Suggestions are possible NEXT MESSAGES from the learner, not from you.
List at most 5 new_words, skipping very common words (de, het, een, ik, en, ...).
"""

CORRECTION_PROMPT = """You are a helpful Dutch language tutor. Your tasks are:
1. Correct any grammar or spelling mistakes in the given Dutch text.
2. Provide an English translation of the corrected text.

Return a JSON object with:
- original: the original text
- corrected: the corrected text in Dutch
- translation: the English translation of the corrected text
- explanation: a brief explanation of the corrections (1-2 sentences max)
- corrections: an array of objects with original, corrected and explanation (1 sentence max)
"""

TRANSLATION_PROMPT = """You translate single Dutch words for a language learner.
Translate the word as it is used in the given sentence, in at most a few English words.
Return a JSON object with one key: translation (string).
"""

_SPEAKERS = {"user": "Gebruiker", "assistant": "Tutor"}


def format_history(messages: List[ChatMessage]) -> str:
	lines = [f"{_SPEAKERS[m.role]}: {m.content}" for m in messages if m.role in _SPEAKERS]
	return "\n".join(lines) or "(no messages yet)"


def _translation_key(word: str, context: str) -> Tuple[str, str]:
	return (word.strip().lower(), context.strip())


class TutorService:
	"""Upstream operations: persona replies, grammar correction, word translation.

	The language model client is created on first use, so a missing key
	surfaces as a ``ValueError`` from the first call rather than at startup.
	"""

	def __init__(
		self,
		client_factory: Callable[[], LLMClient] = LLMClient,
		*,
		translation_cache_size: int = 500,
	) -> None:
		self._client_factory = client_factory
		self._client: Optional[LLMClient] = None
		self._cache_size = translation_cache_size
		self._translations: "OrderedDict[Tuple[str, str], str]" = OrderedDict()
		self._cache_lock = threading.Lock()

	@property
	def client(self) -> LLMClient:
		if self._client is None:
			self._client = self._client_factory()
		return self._client

	async def reply(
		self,
		topic: TopicConfig,
		messages: List[ChatMessage],
		user_input: Optional[str] = None,
	) -> ChatReply:
		conversation = list(messages)
		latest = (user_input or "").strip()
		if latest:
			conversation.append(ChatMessage(role="user", content=latest))
		elif conversation and conversation[-1].role == "user":
			latest = conversation[-1].content
		persona = render_prompt(
			topic.template,
			{
				"chat_history": format_history(conversation[:-1] if latest else conversation),
				"latest_user_input": latest,
			},
		)
		system_prompt = f"{persona}\n\nCurrent topic: {topic.title}\n{CHAT_REPLY_CONTRACT}"
		raw = await self.client.generate_json(
			system_prompt,
			[m.model_dump() for m in conversation],
			temperature=0.7,
		)
		return parse_reply(raw, ChatReply)

	async def correct(self, text: str) -> GrammarCorrection:
		raw = await self.client.generate_json(
			CORRECTION_PROMPT,
			[{"role": "user", "content": f'Please correct and translate this Dutch text: "{text}"'}],
			temperature=0.2,
		)
		result = parse_reply(raw, GrammarCorrection)
		return result.model_copy(update={"original": text})

	def cached_translation(self, word: str, context: str) -> Optional[WordTranslation]:
		"""Look up a previous translation without touching the upstream."""
		cached = self._cached_translation(_translation_key(word, context))
		if cached is None:
			return None
		return WordTranslation(translation=cached, cached=True)

	async def translate(self, word: str, context: str) -> WordTranslation:
		hit = self.cached_translation(word, context)
		if hit is not None:
			return hit
		raw = await self.client.generate_json(
			TRANSLATION_PROMPT,
			[{"role": "user", "content": f'Word: "{word}"\nSentence: "{context}"'}],
			temperature=0.2,
		)
		result = parse_reply(raw, WordTranslation)
		self._store_translation(_translation_key(word, context), result.translation)
		return result.model_copy(update={"cached": False})

	async def aclose(self) -> None:
		if self._client is not None:
			await self._client.aclose()
			self._client = None

	def _cached_translation(self, key: Tuple[str, str]) -> Optional[str]:
		with self._cache_lock:
			value = self._translations.get(key)
			if value is not None:
				self._translations.move_to_end(key)
			return value

	def _store_translation(self, key: Tuple[str, str], value: str) -> None:
		if self._cache_size <= 0:
			return
		with self._cache_lock:
			self._translations[key] = value
			self._translations.move_to_end(key)
			while len(self._translations) > self._cache_size:
				self._translations.popitem(last=False)
