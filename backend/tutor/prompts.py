"""Topic catalogue: tutor personas loaded from YAML files, one per topic."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Mapping

import yaml
from pydantic import BaseModel, Field

from .schemas import Suggestion

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class TopicNotFoundError(LookupError):
	def __init__(self, slug: str) -> None:
		super().__init__(f"Failed to load prompt for topic: {slug}")
		self.slug = slug


class InitialMessage(BaseModel):
	dutch: str
	english: str


class TopicConfig(BaseModel):
	slug: str
	name: str
	title: str
	description: str = ""
	initial_message: InitialMessage
	initial_suggestions: List[Suggestion] = Field(default_factory=list)
	input_variables: List[str] = Field(default_factory=list)
	template: str
	response_format: str = ""


def normalize_slug(topic: str) -> str:
	return (topic or "").strip().lower().replace("_", "-")


def render_prompt(template: str, variables: Mapping[str, str]) -> str:
	"""Replace ``{{name}}`` placeholders; unknown names are left untouched."""

	def _sub(match: re.Match[str]) -> str:
		key = match.group(1)
		return str(variables[key]) if key in variables else match.group(0)

	return _PLACEHOLDER_RE.sub(_sub, template)


class TopicCatalogue:
	def __init__(self, directory: Path) -> None:
		self.directory = Path(directory)
		self._cache: Dict[str, TopicConfig] = {}
		self._lock = threading.Lock()

	def load(self, topic: str) -> TopicConfig:
		slug = normalize_slug(topic)
		if not _SLUG_RE.match(slug):
			raise TopicNotFoundError(slug)
		with self._lock:
			cached = self._cache.get(slug)
		if cached is not None:
			return cached
		path = self.directory / f"{slug}.yaml"
		try:
			with path.open("r", encoding="utf-8") as handle:
				data = yaml.safe_load(handle) or {}
			if not isinstance(data, dict):
				raise ValueError(f"{path.name} does not contain a mapping")
			config = TopicConfig.model_validate({"slug": slug, **data})
		except (OSError, yaml.YAMLError, ValueError) as exc:
			logger.error("Error loading prompt for topic %s: %s", slug, exc)
			raise TopicNotFoundError(slug) from exc
		with self._lock:
			self._cache[slug] = config
		return config

	def list(self) -> List[TopicConfig]:
		topics = []
		for path in sorted(self.directory.glob("*.yaml")):
			try:
				topics.append(self.load(path.stem))
			except TopicNotFoundError:
				continue
		return topics
