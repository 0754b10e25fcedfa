"""
Core domain models for place resolution.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
import math
import uuid


IMAGE_URL_TEMPLATE = "https://picsum.photos/seed/{seed}/600/400"
TEMP_SEARCH_RESULT_ID = "temp-search-result"


class Category(str, Enum):
    """User judgment of a place."""
    HIDDEN_GEM = "Hidden Gem"
    TOURIST_TRAP = "Tourist Trap"


class PlaceType(str, Enum):
    """Kind of venue."""
    RESTAURANT = "Restaurant"
    BAR = "Bar"
    CAFE = "Cafe"
    ACTIVITY = "Activity"
    OTHER = "Other"


class ConfidenceTier(str, Enum):
    """
    Precedence rank of the resolver that produced a candidate.

    Text resolution tiers, strongest first:
    - EXACT_LOCAL: matched an entry of the saved set
    - STRUCTURED: coordinates supplied by the structured-knowledge service
    - POSTAL_CODE / ADDRESS / NAME: directory lookup seeded with decreasing precision
    - FALLBACK: raw query against the directory

    The remaining values tag candidates that come from the non-text paths.
    """
    EXACT_LOCAL = "0"
    STRUCTURED = "1"
    POSTAL_CODE = "1a"
    ADDRESS = "1b"
    NAME = "1c"
    FALLBACK = "2"

    REVERSE = "reverse"
    AREA = "area"
    SUGGESTION = "suggestion"


def image_url(seed: Any) -> str:
    return IMAGE_URL_TEMPLATE.format(seed=seed)


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point. Construction fails unless both values are finite and in range."""
    lat: float
    lng: float

    def __post_init__(self) -> None:
        for label, value, bound in (("lat", self.lat, 90.0), ("lng", self.lng, 180.0)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{label} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"{label} must be finite, got {value!r}")
            if not -bound <= value <= bound:
                raise ValueError(f"{label} must be within [-{bound:g}, {bound:g}], got {value!r}")
        object.__setattr__(self, "lat", float(self.lat))
        object.__setattr__(self, "lng", float(self.lng))

    @classmethod
    def parse(cls, lat: Any, lng: Any) -> Optional["Coordinate"]:
        """Coerce loosely-typed values (e.g. Nominatim strings); None when unusable."""
        try:
            return cls(float(lat), float(lng))
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class BoundingBox:
    """Viewport bounds in Overpass order (south, west, north, east)."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        # Validates each corner.
        Coordinate(self.south, self.west)
        Coordinate(self.north, self.east)
        if self.south > self.north:
            raise ValueError("south must not exceed north")

    def as_overpass(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


@dataclass
class Place:
    """
    A saved, located point of interest.

    The saved set is an ordered sequence of these; order is user-significant.
    """
    id: str
    name: str
    coordinate: Coordinate
    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = PlaceType.OTHER
    image: str = ""
    address: Optional[str] = None
    visited: bool = False
    rating: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.coordinate, Coordinate):
            raise ValueError("place requires a Coordinate")

    @staticmethod
    def generate_id() -> str:
        return str(uuid.uuid4())


@dataclass
class Candidate:
    """
    Transient resolution output, not yet saved.

    Carries the same fields as a Place plus the tier that produced it. A
    candidate only exists once a finite coordinate has been obtained.
    """
    name: str
    coordinate: Coordinate
    tier: ConfidenceTier
    id: str = TEMP_SEARCH_RESULT_ID
    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = PlaceType.OTHER
    image: str = ""
    address: Optional[str] = None
    visited: bool = False
    rating: Optional[float] = None
    # Set when the candidate mirrors an already-saved place.
    saved_place_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.coordinate, Coordinate):
            raise ValueError("candidate requires a Coordinate")
        if not self.image:
            self.image = image_url(self.id)

    @classmethod
    def from_place(cls, place: Place) -> "Candidate":
        return cls(
            id=place.id,
            name=place.name,
            coordinate=place.coordinate,
            tier=ConfidenceTier.EXACT_LOCAL,
            description=place.description,
            category=place.category,
            place_type=place.place_type,
            image=place.image,
            address=place.address,
            visited=place.visited,
            rating=place.rating,
            saved_place_id=place.id,
        )

    def to_place(self, place_id: Optional[str] = None) -> Place:
        """Promote to a persistent Place with a fresh id."""
        return Place(
            id=place_id or Place.generate_id(),
            name=self.name,
            coordinate=self.coordinate,
            description=self.description,
            category=self.category,
            place_type=self.place_type,
            image=self.image,
            address=self.address,
            visited=False,
            rating=self.rating,
        )
