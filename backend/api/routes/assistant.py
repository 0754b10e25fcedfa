"""
Recommendation assistant route.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import Field
from starlette.concurrency import run_in_threadpool

from api.schemas import CamelModel
from domain.models import Category, PlaceType
from services.recommendations import RecommendationAssistant

router = APIRouter()
_assistant: Optional[RecommendationAssistant] = None


def get_assistant() -> RecommendationAssistant:
    global _assistant
    if _assistant is None:
        _assistant = RecommendationAssistant()
    return _assistant


class AssistantRequest(CamelModel):
    message: str = Field(min_length=1)


class PlaceDraftResponse(CamelModel):
    name: str
    description: str
    category: Category
    place_type: PlaceType
    address: Optional[str] = None


class AssistantResponse(CamelModel):
    text: str
    sources: List[Dict[str, str]] = []
    drafts: List[PlaceDraftResponse] = []
    error: Optional[str] = None


@router.post("", response_model=AssistantResponse)
async def ask(body: AssistantRequest):
    reply = await run_in_threadpool(get_assistant().ask, body.message)
    return AssistantResponse(
        text=reply.text,
        sources=reply.sources,
        drafts=[
            PlaceDraftResponse(
                name=d.name,
                description=d.description,
                category=d.category,
                place_type=d.place_type,
                address=d.address,
            )
            for d in reply.drafts
        ],
        error=reply.error,
    )
