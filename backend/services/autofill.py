"""
AI auto-fill for the manual "add place" form.

The user types a name; the structured-knowledge service supplies description,
category, type and address. The pin comes from the answer's coordinates when
they are usable, otherwise from one directory lookup seeded the same way the
text pipeline seeds it (postal code, then address, then name).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from domain.models import Category, ConfidenceTier, Coordinate, PlaceType
from services.geocoding import DirectoryClient, get_default_directory_client
from services.places_types import DirectoryHit, RateLimited, SoftFailure
from services.precision_hint import PrecisionHintExtractor, default_hint_extractor
from services.resolvers import plan_directory_query
from services.result_normalizer import RawCoordinates, parse_json_model
from services.structured_knowledge import (
    CATEGORY_VALUES,
    PLACE_TYPE_VALUES,
    StructuredKnowledgeClient,
    get_default_structured_client,
)
from settings import settings

logger = logging.getLogger(__name__)

AUTOFILL_CANDIDATE_LIMIT = 5
VENUE_CLASSES = {"amenity", "tourism", "shop", "leisure"}
VENUE_TYPES = {"restaurant", "cafe", "bar"}

QUOTA_MESSAGE = "Auto-fill unavailable: AI quota exceeded. Please enter details manually."
UNAVAILABLE_MESSAGE = "Could not fetch AI details. Please enter manually."

AUTOFILL_PROMPT = """Analyze the place named "{name}" in {region}.

I need specific details and its EXACT location.
If it's a specific venue (restaurant, shop, etc.), find its address.

Return JSON."""

AUTOFILL_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "description": {"type": "STRING"},
        "category": {"type": "STRING", "enum": CATEGORY_VALUES},
        "placeType": {"type": "STRING", "enum": PLACE_TYPE_VALUES},
        "address": {"type": "STRING"},
        "coordinates": {
            "type": "OBJECT",
            "properties": {
                "lat": {"type": "NUMBER"},
                "lng": {"type": "NUMBER"},
            },
            "nullable": True,
        },
    },
    "required": ["description", "category", "placeType", "address"],
}


class AutoFillPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = Field(default=PlaceType.OTHER, alias="placeType")
    address: Optional[str] = None
    coordinates: Optional[RawCoordinates] = None

    def coordinate(self) -> Optional[Coordinate]:
        if self.coordinates is None:
            return None
        return Coordinate.parse(self.coordinates.lat, self.coordinates.lng)


@dataclass
class AutoFillResult:
    name: str
    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = PlaceType.OTHER
    address: Optional[str] = None
    coordinate: Optional[Coordinate] = None
    # Which source pinned the coordinate, when one was found.
    tier: Optional[ConfidenceTier] = None
    error: Optional[str] = None


def pick_venue_hit(hits: Sequence[DirectoryHit]) -> Optional[DirectoryHit]:
    """First hit that looks like a venue, else the top-ranked hit."""
    for hit in hits:
        if hit.category in VENUE_CLASSES or hit.type in VENUE_TYPES:
            return hit
    return hits[0] if hits else None


class PlaceAutoFiller:
    def __init__(
        self,
        client: Optional[StructuredKnowledgeClient] = None,
        directory: Optional[DirectoryClient] = None,
        extractor: Optional[PrecisionHintExtractor] = None,
        region: Optional[str] = None,
    ):
        self.client = client or get_default_structured_client()
        self.directory = directory or get_default_directory_client()
        self.extractor = extractor or default_hint_extractor()
        self.region = region or settings.REGION_NAME

    def _locate(self, name: str, address: Optional[str]) -> tuple[Optional[Coordinate], Optional[ConfidenceTier]]:
        query, tier = plan_directory_query(name, address, self.extractor, self.region)
        try:
            hits: List[DirectoryHit] = self.directory.search(
                query, limit=AUTOFILL_CANDIDATE_LIMIT, address_details=True
            )
        except SoftFailure as exc:
            logger.warning("[AUTOFILL] geocode failed for %r: %s", query, exc)
            return None, None
        # Postal-code and address queries trust the directory ranking.
        hit = pick_venue_hit(hits) if tier is ConfidenceTier.NAME else (hits[0] if hits else None)
        if hit is None:
            logger.info("[AUTOFILL] no directory result for %r", query)
            return None, None
        return hit.coordinate, tier

    def autofill(self, name: str) -> AutoFillResult:
        name = name.strip()
        result = AutoFillResult(name=name)
        if not name:
            return result

        prompt = AUTOFILL_PROMPT.format(name=name, region=self.region)
        try:
            payload = parse_json_model(self.client.generate_json(prompt, AUTOFILL_RESPONSE_SCHEMA), AutoFillPayload)
        except RateLimited as exc:
            logger.warning("[AUTOFILL] rate limited for %r: %s", name, exc)
            result.description = QUOTA_MESSAGE
            result.error = "rate_limited"
            return result
        except SoftFailure as exc:
            logger.warning("[AUTOFILL] structured lookup failed for %r: %s", name, exc)
            result.description = UNAVAILABLE_MESSAGE
            result.error = "unavailable"
            return result

        result.description = payload.description
        result.category = payload.category
        result.place_type = payload.place_type
        result.address = payload.address or None

        coordinate = payload.coordinate()
        if coordinate is not None:
            result.coordinate, result.tier = coordinate, ConfidenceTier.STRUCTURED
        else:
            result.coordinate, result.tier = self._locate(name, result.address)
        return result


_default_autofiller: Optional[PlaceAutoFiller] = None


def get_default_autofiller() -> PlaceAutoFiller:
    global _default_autofiller
    if _default_autofiller is None:
        _default_autofiller = PlaceAutoFiller()
    return _default_autofiller
