from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import get_topics
from ..prompts import InitialMessage, TopicCatalogue, TopicNotFoundError
from ..schemas import Suggestion

router = APIRouter(prefix="/topics", tags=["topics"])


class TopicSummary(BaseModel):
	slug: str
	title: str
	description: str


class TopicDetail(TopicSummary):
	initial_message: InitialMessage
	initial_suggestions: List[Suggestion]


@router.get("", response_model=List[TopicSummary])
async def list_topics(topics: TopicCatalogue = Depends(get_topics)):
	return [TopicSummary(slug=t.slug, title=t.title, description=t.description) for t in topics.list()]


@router.get("/{slug}", response_model=TopicDetail)
async def get_topic(slug: str, topics: TopicCatalogue = Depends(get_topics)):
	try:
		topic = topics.load(slug)
	except TopicNotFoundError:
		raise HTTPException(status_code=404, detail="topic not found")
	return TopicDetail(
		slug=topic.slug,
		title=topic.title,
		description=topic.description,
		initial_message=topic.initial_message,
		initial_suggestions=topic.initial_suggestions,
	)
