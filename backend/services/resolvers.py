"""
Resolver adapters.

Text resolvers share one capability, ``attempt(request) -> Candidate``, and
raise a ``ResolutionError`` subclass when they have nothing to offer. The
orchestrator tries them in tier order. The map-click, viewport and autocomplete
paths have their own small entry points below.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from domain.models import BoundingBox, Candidate, ConfidenceTier, Coordinate, Place
from services.area_discovery import AreaDiscoveryClient
from services.dedup import filter_known_places
from services.geocoding import DirectoryClient
from services.places_types import DirectoryHit, LookupEmpty, SoftFailure
from services.precision_hint import PrecisionHintExtractor
from services.query_normalizer import NormalizedQuery
from services.result_normalizer import (
    candidate_from_area_element,
    candidate_from_directory_hit,
    candidate_from_reverse,
    candidate_from_structured,
    candidate_from_suggestion,
    parse_structured_payload,
)
from services.structured_knowledge import StructuredKnowledgeClient

logger = logging.getLogger(__name__)

# Addresses shorter than this are not worth a directory query of their own.
MIN_ADDRESS_SEED_LENGTH = 5


@dataclass(frozen=True)
class ResolutionRequest:
    query: NormalizedQuery
    saved: Tuple[Place, ...] = ()


class Resolver(Protocol):
    name: str
    tier: ConfidenceTier

    def attempt(self, request: ResolutionRequest) -> Candidate:
        ...


def plan_directory_query(
    name: str,
    address: Optional[str],
    extractor: PrecisionHintExtractor,
    region: str,
) -> Tuple[str, ConfidenceTier]:
    """Pick the most precise directory query available for a structured answer."""
    code = extractor.extract(address)
    if code:
        return f"{code} {region}", ConfidenceTier.POSTAL_CODE
    seed = (address or "").strip()
    if len(seed) >= MIN_ADDRESS_SEED_LENGTH:
        return f"{seed} {region}", ConfidenceTier.ADDRESS
    return f"{name} {region}", ConfidenceTier.NAME


class LocalMatchResolver:
    """Tier 0: first saved place, in saved-set order, whose name contains the query."""

    name = "local_match"
    tier = ConfidenceTier.EXACT_LOCAL

    def attempt(self, request: ResolutionRequest) -> Candidate:
        for place in request.saved:
            if request.query.matches(place.name):
                return Candidate.from_place(place)
        raise LookupEmpty("No saved place matches")


class StructuredKnowledgeResolver:
    """
    Tier 1: ask the structured-knowledge service about the query.

    Coordinates in the answer are accepted directly. Otherwise the answer's
    address seeds one directory lookup (postal code, then address, then name).
    """

    name = "structured_knowledge"
    tier = ConfidenceTier.STRUCTURED

    def __init__(
        self,
        client: StructuredKnowledgeClient,
        directory: DirectoryClient,
        extractor: PrecisionHintExtractor,
        region: str,
    ):
        self.client = client
        self.directory = directory
        self.extractor = extractor
        self.region = region

    def attempt(self, request: ResolutionRequest) -> Candidate:
        payload = parse_structured_payload(self.client.lookup_place(request.query.text))

        coordinate = payload.coordinate()
        if coordinate is not None:
            return candidate_from_structured(payload, coordinate, ConfidenceTier.STRUCTURED)

        query, tier = plan_directory_query(payload.name, payload.address, self.extractor, self.region)
        logger.info("[SEARCH] geocoding structured answer with %r (tier %s)", query, tier.value)
        hits = self.directory.search(query, limit=1)
        if not hits:
            raise LookupEmpty(f"No directory result for {query!r}")
        return candidate_from_structured(payload, hits[0].coordinate, tier)


class GenericFallbackResolver:
    """Tier 2: the raw query, region-qualified, straight against the directory."""

    name = "generic_fallback"
    tier = ConfidenceTier.FALLBACK

    def __init__(self, directory: DirectoryClient, region: str):
        self.directory = directory
        self.region = region

    def attempt(self, request: ResolutionRequest) -> Candidate:
        query = f"{request.query.text} {self.region}"
        hits = self.directory.search(query, limit=1)
        if not hits:
            raise LookupEmpty(f"No directory result for {query!r}")
        return candidate_from_directory_hit(hits[0], request.query.text, ConfidenceTier.FALLBACK)


class ReverseGeocodeResolver:
    """Map click: name the clicked point. Always yields a draft for a valid coordinate."""

    def __init__(self, directory: DirectoryClient):
        self.directory = directory

    def resolve(self, coordinate: Coordinate) -> Candidate:
        try:
            data = self.directory.reverse(coordinate)
        except SoftFailure as exc:
            logger.warning("Reverse geocode failed for %s,%s: %s", coordinate.lat, coordinate.lng, exc)
            data = {}
        return candidate_from_reverse(coordinate, data)


class AreaDiscoveryResolver:
    """Viewport: discovered POIs minus those already saved, as candidates."""

    def __init__(self, client: AreaDiscoveryClient):
        self.client = client

    def discover(self, bounds: BoundingBox, saved: Sequence[Place]) -> List[Candidate]:
        elements = filter_known_places(self.client.discover(bounds), saved)
        return [candidate_from_area_element(el) for el in elements]


class SuggestionResolver:
    """Autocomplete against the directory; selection needs no further round trip."""

    def __init__(self, directory: DirectoryClient, limit: int = 5):
        self.directory = directory
        self.limit = limit

    def suggest(self, text: str) -> List[DirectoryHit]:
        try:
            return self.directory.search(text, limit=self.limit, address_details=True)
        except SoftFailure as exc:
            logger.warning("Error fetching suggestions for %r: %s", text, exc)
            return []

    @staticmethod
    def select(hit: DirectoryHit) -> Candidate:
        return candidate_from_suggestion(hit)
