"""
Place insight route: travel tip and review summary for a place card.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from api.schemas import CamelModel
from services.insights import get_default_insights_service

router = APIRouter()


class InsightsRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)


class InsightsResponse(CamelModel):
    tip: str
    summary: Optional[str] = None
    sources: List[Dict[str, str]] = []
    quota_exceeded: bool = False


@router.post("", response_model=InsightsResponse)
async def place_insights(body: InsightsRequest):
    insights = await run_in_threadpool(get_default_insights_service().insights, body.name)
    return InsightsResponse(
        tip=insights.tip,
        summary=insights.summary,
        sources=insights.sources,
        quota_exceeded=insights.quota_exceeded,
    )
