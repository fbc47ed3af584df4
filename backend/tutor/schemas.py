from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

MAX_MESSAGE_LENGTH = 5000
MAX_MESSAGES_COUNT = 50

M = TypeVar("M", bound=BaseModel)


class MalformedResponseError(Exception):
	"""The language model answered, but not with the structure we asked for."""


# ---- Requests ----

class ChatMessage(BaseModel):
	role: Literal["user", "assistant", "system"]
	content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class ChatRequest(BaseModel):
	messages: List[ChatMessage] = Field(default_factory=list, max_length=MAX_MESSAGES_COUNT)
	user_input: Optional[str] = Field(default=None, max_length=MAX_MESSAGE_LENGTH)
	topic: Optional[str] = None

	@model_validator(mode="after")
	def _require_some_input(self) -> "ChatRequest":
		if not self.messages and not (self.user_input or "").strip():
			raise ValueError("Either messages or user_input must be provided")
		return self


class CorrectRequest(BaseModel):
	text: str = ""


class TranslateRequest(BaseModel):
	word: str = ""
	context: str = ""


# ---- Upstream replies ----

class Suggestion(BaseModel):
	dutch: str
	english: str = ""


class Correction(BaseModel):
	correctedDutch: str = ""
	explanation: str = ""


class NewWord(BaseModel):
	dutch: str
	english: str = ""
	dutch_sentence: str = ""
	english_sentence: str = ""


DEFAULT_SUGGESTIONS: List[Dict[str, str]] = [
	{"dutch": "Kunt u dat herhalen alstublieft?", "english": "Can you repeat that please?"},
	{"dutch": "Ik begrijp het niet helemaal.", "english": "I don't quite understand."},
	{"dutch": "Kunt u langzamer praten?", "english": "Can you speak more slowly?"},
]


class ChatReply(BaseModel):
	ai_reply: str = Field(min_length=1)
	translation: str
	correction: Correction = Field(default_factory=Correction)
	suggestions: List[Suggestion] = Field(default_factory=lambda: [Suggestion(**s) for s in DEFAULT_SUGGESTIONS])
	new_words: List[NewWord] = Field(default_factory=list)

	@field_validator("correction", mode="before")
	@classmethod
	def _null_correction(cls, value: Any) -> Any:
		return {} if value is None else value

	@field_validator("suggestions", mode="before")
	@classmethod
	def _coerce_suggestions(cls, value: Any) -> Any:
		# Topic prompts sometimes get plain strings back instead of objects
		if value is None:
			return [dict(s) for s in DEFAULT_SUGGESTIONS]
		if isinstance(value, list):
			return [{"dutch": v} if isinstance(v, str) else v for v in value]
		return value

	@field_validator("new_words", mode="before")
	@classmethod
	def _null_words(cls, value: Any) -> Any:
		return [] if value is None else value


class CorrectionItem(BaseModel):
	original: str = ""
	corrected: str = ""
	explanation: str = ""


class GrammarCorrection(BaseModel):
	original: str = ""
	corrected: str
	translation: str
	explanation: str = ""
	corrections: List[CorrectionItem] = Field(default_factory=list)


class WordTranslation(BaseModel):
	translation: str = Field(min_length=1)
	cached: bool = False


def extract_json_object(text: str) -> Dict[str, Any]:
	"""Parse the whole text as JSON, else the first ``{...}`` block inside it."""
	if not isinstance(text, str):
		raise MalformedResponseError(f"expected model text, got {type(text).__name__}")
	try:
		data = json.loads(text)
	except ValueError:
		match = re.search(r"\{[\s\S]*\}", text)
		if not match:
			raise MalformedResponseError("no JSON object in model output")
		try:
			data = json.loads(match.group(0))
		except ValueError as exc:
			raise MalformedResponseError(f"invalid JSON in model output: {exc}") from exc
	if not isinstance(data, dict):
		raise MalformedResponseError(f"expected a JSON object, got {type(data).__name__}")
	return data


def parse_reply(text: str, model: Type[M]) -> M:
	data = extract_json_object(text)
	try:
		return model.model_validate(data)
	except ValidationError as exc:
		fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors())
		raise MalformedResponseError(f"{model.__name__} failed validation: {fields}") from exc


# ---- Fallback bodies ----

def chat_fallback(
	ai_reply: str = "Sorry, an error occurred while generating the response.",
	translation: str = "Sorry, er is een fout opgetreden bij het genereren van het antwoord.",
	suggestions: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
	return {
		"ai_reply": ai_reply,
		"translation": translation,
		"correction": {"correctedDutch": "", "explanation": ""},
		"suggestions": suggestions if suggestions is not None else [dict(s) for s in DEFAULT_SUGGESTIONS],
		"new_words": [],
	}


def correct_fallback(text: str = "") -> Dict[str, Any]:
	return {
		"original": text,
		"corrected": text,
		"translation": "",
		"explanation": "",
		"corrections": [],
	}


def translate_fallback() -> Dict[str, Any]:
	return {"translation": ""}
