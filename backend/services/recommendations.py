"""
Recommendation assistant.

Answers a free-text question with a grounded reply, then asks the model to
pull any places it mentions out into structured drafts. Drafts have no
coordinate; a client turns one into a candidate by searching for its name.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.models import Category, PlaceType
from services.places_types import RateLimited, SoftFailure, TransportError
from services.structured_knowledge import (
    CATEGORY_VALUES,
    PLACE_TYPE_VALUES,
    StructuredKnowledgeClient,
    function_calls,
    get_default_structured_client,
    grounding_sources,
    response_text,
)

logger = logging.getLogger(__name__)

# Replies shorter than this rarely name a place worth extracting.
MIN_EXTRACTION_TEXT_LENGTH = 50

EMPTY_REPLY = "I couldn't find any specific recommendations."
RATE_LIMITED_REPLY = "I've reached my daily usage limit for AI responses. Please try again later."
BAD_REQUEST_REPLY = "I'm having trouble processing that request. Please try rephrasing."
GENERIC_ERROR_REPLY = "Sorry, I encountered an error. Please try again."

ANSWER_SUFFIX = """

IMPORTANT: Provide the response in a clear, informative text format.
If recommending places, mention their names, what they are (cafe, park, etc.), and why they are good.
If specific addresses are found, mention them."""

EXTRACTION_PROMPT = """You are a data extraction assistant.
Analyze the following text. If it contains specific recommendations for places, restaurants, attractions, or shops, extract them into a structured list using the 'display_places' tool.

- Infer the Category ('Hidden Gem' vs 'Tourist Trap') based on the description (e.g. "popular", "crowded" -> Trap; "quiet", "local" -> Gem).
- Infer the Place Type ('Restaurant', 'Bar', 'Cafe', 'Activity', 'Other').
- Extract the Address if present.

TEXT TO ANALYZE:
{text}"""

DISPLAY_PLACES_TOOL: Dict[str, Any] = {
    "name": "display_places",
    "description": (
        "Display a list of recommended places to the user with structured details. "
        "Use this whenever the user asks for recommendations or mentions specific places."
    ),
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "places": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "name": {"type": "STRING"},
                        "description": {"type": "STRING"},
                        "category": {"type": "STRING", "enum": CATEGORY_VALUES},
                        "placeType": {"type": "STRING", "enum": PLACE_TYPE_VALUES},
                        "address": {"type": "STRING"},
                    },
                    "required": ["name", "description", "category", "placeType"],
                },
            }
        },
        "required": ["places"],
    },
}


class PlaceDraft(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(min_length=1)
    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = Field(default=PlaceType.OTHER, alias="placeType")
    address: Optional[str] = None


@dataclass
class AssistantReply:
    text: str
    sources: List[Dict[str, str]] = field(default_factory=list)
    drafts: List[PlaceDraft] = field(default_factory=list)
    error: Optional[str] = None


def _parse_drafts(calls: List[Dict[str, Any]]) -> List[PlaceDraft]:
    drafts: List[PlaceDraft] = []
    for call in calls:
        if call.get("name") != "display_places":
            continue
        places = (call.get("args") or {}).get("places")
        if not isinstance(places, list):
            continue
        for item in places:
            try:
                drafts.append(PlaceDraft.model_validate(item))
            except ValidationError as exc:
                logger.info("Skipping malformed place draft %r: %s", item, exc.error_count())
    return drafts


class RecommendationAssistant:
    def __init__(self, client: Optional[StructuredKnowledgeClient] = None):
        self.client = client or get_default_structured_client()

    def _extract(self, text: str) -> List[PlaceDraft]:
        body = {
            "contents": [{"role": "user", "parts": [{"text": EXTRACTION_PROMPT.format(text=text)}]}],
            "tools": [{"functionDeclarations": [DISPLAY_PLACES_TOOL]}],
            "toolConfig": {
                "functionCallingConfig": {
                    "mode": "ANY",
                    "allowedFunctionNames": ["display_places"],
                }
            },
        }
        return _parse_drafts(function_calls(self.client.generate(body)))

    def ask(self, message: str) -> AssistantReply:
        body = {
            "contents": [{"role": "user", "parts": [{"text": message + ANSWER_SUFFIX}]}],
            "tools": [{"google_search": {}}],
        }
        try:
            data = self.client.generate(body)
        except RateLimited as exc:
            logger.warning("Assistant rate limited: %s", exc)
            return AssistantReply(text=RATE_LIMITED_REPLY, error="rate_limited")
        except TransportError as exc:
            logger.error("Assistant request failed: %s", exc)
            if exc.status_code == 400:
                return AssistantReply(text=BAD_REQUEST_REPLY, error="bad_request")
            return AssistantReply(text=GENERIC_ERROR_REPLY, error="transport")
        except SoftFailure as exc:
            logger.error("Assistant response unusable: %s", exc)
            return AssistantReply(text=GENERIC_ERROR_REPLY, error="malformed")

        try:
            text = response_text(data)
        except SoftFailure:
            text = EMPTY_REPLY
        reply = AssistantReply(text=text, sources=grounding_sources(data))

        if len(text) > MIN_EXTRACTION_TEXT_LENGTH:
            try:
                reply.drafts = self._extract(text)
            except SoftFailure as exc:
                # The user still gets the text answer.
                logger.warning("Structured extraction failed: %s", exc)
        return reply
