"""
Map heterogeneous adapter output into the canonical Candidate shape.

Each source reports venue kinds differently (OSM tags from the directory and
Overpass, enum strings from the structured service); the fixed tables below
translate them into ``PlaceType``. Remote JSON from the structured service goes
through a validating parse before any field is trusted.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from domain.models import (
    Candidate,
    Category,
    ConfidenceTier,
    Coordinate,
    PlaceType,
    image_url,
)
from services.places_types import AreaElement, DirectoryHit, MalformedResponse

UNKNOWN_LOCATION = "Unknown Location"
AREA_DESCRIPTION = "Found nearby. Click to view details or add to your list."

# amenity=* values shared by every OSM-backed source
AMENITY_PLACE_TYPES: Dict[str, PlaceType] = {
    "restaurant": PlaceType.RESTAURANT,
    "cafe": PlaceType.CAFE,
    "bar": PlaceType.BAR,
    "pub": PlaceType.BAR,
}
TOURISM_ACTIVITY_VALUES = {"attraction", "museum"}

# Reverse lookups: name from the most specific address field present.
REVERSE_NAME_FIELDS = ("amenity", "building", "tourism", "shop", "road")
# Autocomplete: venue-ish fields first, then the head of the display label.
SUGGESTION_NAME_FIELDS = ("amenity", "building", "shop", "tourism")

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)
ModelT = TypeVar("ModelT", bound=BaseModel)


class RawCoordinates(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: Optional[float] = None
    lng: Optional[float] = Field(default=None, validation_alias=AliasChoices("lng", "lon"))


class StructuredPlacePayload(BaseModel):
    """The JSON object the structured-knowledge service is asked to return."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(min_length=1)
    address: Optional[str] = None
    coordinates: Optional[RawCoordinates] = None
    description: Optional[str] = None
    category: Category
    place_type: PlaceType = Field(alias="placeType")

    def coordinate(self) -> Optional[Coordinate]:
        """Both lat and lng finite and in range, else None."""
        if self.coordinates is None:
            return None
        return Coordinate.parse(self.coordinates.lat, self.coordinates.lng)


def _format_validation_errors(exc: ValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        errors.append(f"{loc}: {err.get('msg', 'invalid')}")
    return errors


def parse_json_model(text: Optional[str], model: Type[ModelT]) -> ModelT:
    """Validate a JSON object body against ``model``; raises MalformedResponse listing bad fields."""
    if text is None or not text.strip():
        raise MalformedResponse("Empty structured response", errors=["<root>: empty body"])
    fenced = _FENCE_RE.match(text)
    body = fenced.group(1) if fenced else text
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MalformedResponse("Structured response is not JSON", errors=[f"<root>: {exc}"]) from exc
    if not isinstance(data, dict):
        raise MalformedResponse(
            "Structured response is not an object",
            errors=[f"<root>: expected object, got {type(data).__name__}"],
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponse(
            "Structured response does not match schema",
            errors=_format_validation_errors(exc),
        ) from exc


def parse_structured_payload(text: Optional[str]) -> StructuredPlacePayload:
    return parse_json_model(text, StructuredPlacePayload)


def _image_seed(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.casefold()).strip("-") or "place"


def place_type_from_amenity(amenity: Optional[str]) -> PlaceType:
    return AMENITY_PLACE_TYPES.get(amenity or "", PlaceType.OTHER)


def place_type_from_area_tags(tags: Mapping[str, str]) -> PlaceType:
    """restaurant > cafe > bar/pub > attraction/museum > Other."""
    place_type = place_type_from_amenity(tags.get("amenity"))
    if place_type is not PlaceType.OTHER:
        return place_type
    if tags.get("tourism") in TOURISM_ACTIVITY_VALUES:
        return PlaceType.ACTIVITY
    return PlaceType.OTHER


def place_type_from_directory_hit(hit: DirectoryHit) -> PlaceType:
    place_type = place_type_from_amenity(hit.type)
    if place_type is not PlaceType.OTHER:
        return place_type
    if hit.category == "tourism":
        return PlaceType.ACTIVITY
    return PlaceType.OTHER


def _first_field(address: Mapping[str, Any], fields) -> Optional[str]:
    for key in fields:
        value = address.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def reverse_place_name(address: Mapping[str, Any]) -> str:
    return _first_field(address, REVERSE_NAME_FIELDS) or UNKNOWN_LOCATION


def suggestion_name(hit: DirectoryHit) -> str:
    name = _first_field(hit.address, SUGGESTION_NAME_FIELDS)
    if name:
        return name
    head = hit.label.split(",")[0].strip()
    return head or hit.label or UNKNOWN_LOCATION


def candidate_from_structured(
    payload: StructuredPlacePayload,
    coordinate: Coordinate,
    tier: ConfidenceTier,
) -> Candidate:
    address = payload.address or None
    return Candidate(
        name=payload.name,
        coordinate=coordinate,
        tier=tier,
        description=payload.description or (f"Found at {address}" if address else ""),
        category=payload.category,
        place_type=payload.place_type,
        image=image_url(_image_seed(payload.name)),
        address=address,
    )


def candidate_from_directory_hit(hit: DirectoryHit, fallback_name: str, tier: ConfidenceTier) -> Candidate:
    name = hit.name or fallback_name
    return Candidate(
        name=name,
        coordinate=hit.coordinate,
        tier=tier,
        description=f"Found: {hit.label}" if hit.label else "",
        category=Category.HIDDEN_GEM,
        place_type=place_type_from_directory_hit(hit),
        image=image_url(_image_seed(name)),
        address=hit.label or None,
    )


def candidate_from_suggestion(hit: DirectoryHit) -> Candidate:
    return Candidate(
        name=suggestion_name(hit),
        coordinate=hit.coordinate,
        tier=ConfidenceTier.SUGGESTION,
        description=f"Found at: {hit.label}",
        category=Category.HIDDEN_GEM,
        place_type=place_type_from_directory_hit(hit),
        image=image_url(hit.place_id or _image_seed(hit.label)),
        address=hit.label or None,
    )


def candidate_from_reverse(coordinate: Coordinate, data: Mapping[str, Any]) -> Candidate:
    """Draft for a map click. The clicked coordinate is kept as-is."""
    address = data.get("address") if isinstance(data.get("address"), dict) else {}
    amenity = address.get("amenity") if isinstance(address.get("amenity"), str) else None
    label = data.get("display_name") if isinstance(data.get("display_name"), str) else None
    return Candidate(
        name=reverse_place_name(address),
        coordinate=coordinate,
        tier=ConfidenceTier.REVERSE,
        category=Category.HIDDEN_GEM,
        place_type=place_type_from_amenity(amenity),
        image=image_url(f"{coordinate.lat:.5f},{coordinate.lng:.5f}"),
        address=label,
    )


def candidate_from_area_element(element: AreaElement) -> Candidate:
    return Candidate(
        id=f"sugg-{element.element_id}",
        name=element.name or UNKNOWN_LOCATION,
        coordinate=element.coordinate,
        tier=ConfidenceTier.AREA,
        description=AREA_DESCRIPTION,
        # User judgment comes later.
        category=Category.HIDDEN_GEM,
        place_type=place_type_from_area_tags(element.tags),
        image=image_url(element.element_id),
    )
