"""
Place insights shown on a place card: a one-line travel tip and a
search-grounded summary of ratings and reviews.

Both are best effort. The tip always has text; the review summary is None
when it could not be fetched, with ``quota_exceeded`` set if that was due to
rate limiting.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from services.places_types import MalformedResponse, RateLimited, SoftFailure
from services.structured_knowledge import (
    StructuredKnowledgeClient,
    get_default_structured_client,
    grounding_sources,
    response_text,
)
from settings import settings

logger = logging.getLogger(__name__)

DEFAULT_TIP = "Enjoy your visit!"
QUOTA_TIP = "Discovering this place is half the fun!"
NO_REVIEWS = "No reviews found."

TIP_PROMPT = (
    "Give me exactly one interesting, short, unique travel tip (under 20 words) "
    "for visiting {name} in {region}."
)

REVIEWS_PROMPT = """Search for current ratings and reviews of "{name}" in {region} from sources like Google Maps, TripAdvisor, and food blogs.
Provide a very brief summary (1-2 sentences) of the general sentiment (e.g., "Highly rated for brunch", "Mixed reviews on service").
If you find a numeric rating out of 5, mention it."""


@dataclass
class PlaceInsights:
    tip: str
    summary: Optional[str] = None
    sources: List[Dict[str, str]] = field(default_factory=list)
    quota_exceeded: bool = False


class PlaceInsightsService:
    def __init__(
        self,
        client: Optional[StructuredKnowledgeClient] = None,
        tip_model: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self.client = client or get_default_structured_client()
        self.tip_model = tip_model or settings.GEMINI_TIP_MODEL
        self.region = region or settings.REGION_NAME

    def tip(self, name: str) -> str:
        body = {"contents": [{"role": "user", "parts": [{"text": TIP_PROMPT.format(name=name, region=self.region)}]}]}
        try:
            return response_text(self.client.generate(body, model=self.tip_model)).strip()
        except RateLimited:
            logger.info("[INSIGHTS] tip rate limited for %r", name)
            return QUOTA_TIP
        except SoftFailure as exc:
            logger.warning("[INSIGHTS] tip failed for %r: %s", name, exc)
            return DEFAULT_TIP

    def insights(self, name: str) -> PlaceInsights:
        result = PlaceInsights(tip=self.tip(name))
        body = {
            "contents": [{"role": "user", "parts": [{"text": REVIEWS_PROMPT.format(name=name, region=self.region)}]}],
            "tools": [{"google_search": {}}],
        }
        try:
            data = self.client.generate(body)
        except RateLimited:
            logger.info("[INSIGHTS] reviews rate limited for %r", name)
            result.quota_exceeded = True
            return result
        except SoftFailure as exc:
            logger.warning("[INSIGHTS] reviews failed for %r: %s", name, exc)
            return result

        try:
            result.summary = response_text(data).strip()
        except MalformedResponse:
            result.summary = NO_REVIEWS
        result.sources = grounding_sources(data)
        return result


_default_insights: Optional[PlaceInsightsService] = None


def get_default_insights_service() -> PlaceInsightsService:
    global _default_insights
    if _default_insights is None:
        _default_insights = PlaceInsightsService()
    return _default_insights
