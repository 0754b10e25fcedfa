"""
Wire models shared by the API routes.

JSON uses camelCase field names (``placeType``, ``savedPlaceId``) to match the
map client's Location shape.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.models import Candidate, Category, Coordinate, Place, PlaceType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoordinateSchema(CamelModel):
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)

    def to_domain(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class PlaceResponse(CamelModel):
    id: str
    name: str
    coordinate: CoordinateSchema
    description: str
    category: Category
    place_type: PlaceType
    image: str
    address: Optional[str] = None
    visited: bool = False
    rating: Optional[float] = None

    @classmethod
    def from_domain(cls, place: Place) -> "PlaceResponse":
        return cls(
            id=place.id,
            name=place.name,
            coordinate=CoordinateSchema(lat=place.coordinate.lat, lng=place.coordinate.lng),
            description=place.description,
            category=place.category,
            place_type=place.place_type,
            image=place.image,
            address=place.address,
            visited=place.visited,
            rating=place.rating,
        )


class CandidateResponse(PlaceResponse):
    tier: str
    saved_place_id: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateResponse":
        return cls(
            id=candidate.id,
            name=candidate.name,
            coordinate=CoordinateSchema(lat=candidate.coordinate.lat, lng=candidate.coordinate.lng),
            description=candidate.description,
            category=candidate.category,
            place_type=candidate.place_type,
            image=candidate.image,
            address=candidate.address,
            visited=candidate.visited,
            rating=candidate.rating,
            tier=candidate.tier.value,
            saved_place_id=candidate.saved_place_id,
        )
