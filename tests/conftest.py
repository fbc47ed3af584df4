import asyncio
from typing import Any, Dict, List, Union

import pytest
from fastapi.testclient import TestClient

from tutor.main import create_app
from tutor.settings import Settings
from tutor.tutor_service import TutorService


class FakeClock:
	def __init__(self, start: float = 1000.0) -> None:
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> None:
		self.now += seconds


Scripted = Union[str, BaseException, float]


class FakeLLMClient:
	"""Stands in for LLMClient; replays scripted outputs in order.

	A ``str`` is returned as model text, an exception is raised, and a
	``float`` makes the call sleep that many seconds before answering.
	"""

	def __init__(self, outputs: List[Scripted] | None = None, default: str = "") -> None:
		self.outputs = list(outputs or [])
		self.default = default
		self.calls: List[Dict[str, Any]] = []
		self.closed = False

	async def generate_json(self, system_prompt, messages, *, temperature=0.7):
		self.calls.append({"system_prompt": system_prompt, "messages": messages, "temperature": temperature})
		item = self.outputs.pop(0) if self.outputs else self.default
		if isinstance(item, BaseException):
			raise item
		if isinstance(item, float):
			await asyncio.sleep(item)
			return self.default
		return item

	async def aclose(self) -> None:
		self.closed = True


CHAT_JSON = (
	'{"ai_reply": "Natuurlijk! Met melk?", "translation": "Of course! With milk?",'
	' "correction": {"correctedDutch": "", "explanation": ""},'
	' "suggestions": [{"dutch": "Ja, graag.", "english": "Yes, please."}, "Nee, zwart.", "Wat kost het?"],'
	' "new_words": [{"dutch": "natuurlijk", "english": "of course"}]}'
)


def make_settings(**env: Any) -> Settings:
	return Settings(_env_file=None, **env)


@pytest.fixture
def clock():
	return FakeClock()


@pytest.fixture
def llm():
	return FakeLLMClient(default=CHAT_JSON)


@pytest.fixture
def make_client(clock, llm):
	def _make(**env: Any) -> TestClient:
		config = make_settings(GEMINI_API_KEY="test-key", **env)
		tutor = TutorService(lambda: llm, translation_cache_size=config.translation_cache_size)
		return TestClient(create_app(config, tutor=tutor, clock=clock))

	return _make
