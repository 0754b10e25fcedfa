from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from domain.models import Coordinate


@dataclass
class DirectoryHit:
    """One ranked entry returned by the geocoding directory (Nominatim)."""
    place_id: str
    coordinate: Coordinate
    label: str  # Nominatim display_name
    name: Optional[str] = None
    category: Optional[str] = None  # OSM class, e.g. "amenity", "tourism"
    type: Optional[str] = None  # OSM type, e.g. "cafe"
    address: Dict[str, Any] = field(default_factory=dict)
    raw: Optional[dict] = None


@dataclass
class AreaElement:
    """A tagged point returned by the area tag-search service (Overpass)."""
    element_id: str
    coordinate: Coordinate
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name")


class ResolutionError(Exception):
    """Base class for everything a resolver may raise instead of returning a candidate."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class SoftFailure(ResolutionError):
    """A remote source could not be used; the pipeline moves on."""


class TransportError(SoftFailure):
    """Network or HTTP failure."""

    def __init__(self, message: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(SoftFailure):
    """Body was missing, not JSON, or did not match the expected schema."""

    def __init__(self, message: str = "", errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class RateLimited(SoftFailure):
    """Quota exceeded. Never retried; the message is shown to the user as-is."""


class LookupEmpty(ResolutionError):
    """Directory or area service returned zero results."""
