"""
Search API routes.

Text resolution, autocomplete, map-click drafts and viewport discovery. Each
route reads a snapshot of the saved set and hands it to the pipeline; the
pipeline itself never touches storage.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from api.schemas import CamelModel, CandidateResponse, CoordinateSchema, PlaceResponse
from db import SessionLocal
from domain.models import BoundingBox, Coordinate, Place
from repositories import SavedPlacesRepository
from services.area_discovery import get_default_area_client
from services.geocoding import get_default_directory_client
from services.orchestrator import ResolutionState, get_default_orchestrator
from services.places_types import DirectoryHit
from services.query_normalizer import normalize_query
from services.resolvers import AreaDiscoveryResolver, ReverseGeocodeResolver, SuggestionResolver
from services.search_session import SuggestionFetchers, get_default_search_session
from settings import settings

router = APIRouter()
places_repo = SavedPlacesRepository()
logger = logging.getLogger(__name__)

reverse_resolver = ReverseGeocodeResolver(get_default_directory_client())
area_resolver = AreaDiscoveryResolver(get_default_area_client())
suggestion_resolver = SuggestionResolver(get_default_directory_client(), limit=settings.SUGGEST_LIMIT)
suggestion_fetchers = SuggestionFetchers(
    suggestion_resolver,
    debounce_seconds=settings.SUGGEST_DEBOUNCE_MS / 1000.0,
    min_length=settings.SUGGEST_MIN_LENGTH,
    max_sessions=settings.SUGGEST_MAX_SESSIONS,
)


class SearchRequest(CamelModel):
    query: str


class TierAttemptResponse(CamelModel):
    resolver: str
    tier: str
    result: str
    detail: str = ""


class SearchResponse(CamelModel):
    query: Optional[str] = None
    state: ResolutionState
    candidate: Optional[CandidateResponse] = None
    # False when a newer search started before this one finished.
    applied: bool = False
    rate_limited: bool = False
    notices: List[str] = []
    attempts: List[TierAttemptResponse] = []


class SuggestionSchema(BaseModel):
    """Nominatim-shaped suggestion; sent back verbatim on selection."""
    model_config = ConfigDict(populate_by_name=True)

    place_id: Union[str, int]
    lat: float
    lon: float
    display_name: str
    name: Optional[str] = None
    osm_class: Optional[str] = Field(default=None, alias="class")
    type: Optional[str] = None
    address: Dict[str, Any] = {}

    @classmethod
    def from_hit(cls, hit: DirectoryHit) -> "SuggestionSchema":
        return cls(
            place_id=hit.place_id,
            lat=hit.coordinate.lat,
            lon=hit.coordinate.lng,
            display_name=hit.label,
            name=hit.name,
            osm_class=hit.category,
            type=hit.type,
            address=hit.address,
        )

    def to_hit(self) -> DirectoryHit:
        coordinate = Coordinate.parse(self.lat, self.lon)
        if coordinate is None:
            raise ValueError("Suggestion has an invalid coordinate")
        return DirectoryHit(
            place_id=str(self.place_id),
            coordinate=coordinate,
            label=self.display_name,
            name=self.name,
            category=self.osm_class,
            type=self.type,
            address=dict(self.address or {}),
        )


class SuggestionsResponse(CamelModel):
    query: str
    superseded: bool = False
    suggestions: List[SuggestionSchema] = []


class BoundsRequest(CamelModel):
    south: float
    west: float
    north: float
    east: float


class AreaResponse(CamelModel):
    applied: bool
    suggestions: List[CandidateResponse]


def _saved_snapshot() -> List[Place]:
    with SessionLocal() as session:
        return places_repo.list_places(session)


@router.post("", response_model=SearchResponse)
async def search(body: SearchRequest):
    """
    Resolve free text into a single candidate.

    Empty input is a no-op. Otherwise the saved set is checked first, then the
    remote tiers, each once. Only the newest search may update the current
    result slot.
    """
    if normalize_query(body.query) is None:
        return SearchResponse(state=ResolutionState.IDLE)

    session_state = get_default_search_session()
    token = session_state.begin_search()
    saved = _saved_snapshot()
    outcome = await run_in_threadpool(get_default_orchestrator().resolve, body.query, saved)
    applied = session_state.apply_search(token, outcome.candidate)
    if not applied:
        logger.info("[SEARCH] %r finished after a newer search; not applied", outcome.query)

    return SearchResponse(
        query=outcome.query,
        state=outcome.state,
        candidate=CandidateResponse.from_candidate(outcome.candidate) if outcome.candidate else None,
        applied=applied,
        rate_limited=outcome.rate_limited,
        notices=outcome.notices,
        attempts=[
            TierAttemptResponse(resolver=a.resolver, tier=a.tier, result=a.result, detail=a.detail)
            for a in outcome.attempts
        ],
    )


@router.get("/result", response_model=Optional[CandidateResponse])
async def get_result():
    candidate = get_default_search_session().current_result
    return CandidateResponse.from_candidate(candidate) if candidate else None


@router.delete("/result", status_code=204)
async def clear_result():
    get_default_search_session().clear_result()


@router.post("/result/save", response_model=PlaceResponse, status_code=201)
async def save_result():
    """Promote the current search result to the saved set."""
    session_state = get_default_search_session()
    candidate = session_state.current_result
    if candidate is None:
        raise HTTPException(status_code=404, detail="No search result to save")
    with SessionLocal() as session:
        place = places_repo.add_place(session, candidate.to_place())
    session_state.on_place_saved(place)
    return PlaceResponse.from_domain(place)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(q: str = Query(""), session: str = Query("default")):
    """Autocomplete. A newer request from the same input session supersedes this one."""
    hits = await suggestion_fetchers.get(session).fetch(q)
    if hits is None:
        return SuggestionsResponse(query=q, superseded=True)
    return SuggestionsResponse(query=q, suggestions=[SuggestionSchema.from_hit(h) for h in hits])


@router.post("/suggestions/select", response_model=CandidateResponse)
async def select_suggestion(body: SuggestionSchema):
    """Turn a picked suggestion into the current result without another lookup."""
    try:
        candidate = suggestion_resolver.select(body.to_hit())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    session_state = get_default_search_session()
    session_state.apply_search(session_state.begin_search(), candidate)
    return CandidateResponse.from_candidate(candidate)


@router.post("/reverse", response_model=CandidateResponse)
async def reverse(body: CoordinateSchema):
    """Draft a place for a clicked map point."""
    candidate = await run_in_threadpool(reverse_resolver.resolve, body.to_domain())
    return CandidateResponse.from_candidate(candidate)


@router.post("/area", response_model=AreaResponse)
async def search_area(body: BoundsRequest):
    """Discover places in the viewport; replaces the suggested set."""
    try:
        bounds = BoundingBox(south=body.south, west=body.west, north=body.north, east=body.east)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    session_state = get_default_search_session()
    token = session_state.begin_area()
    saved = _saved_snapshot()
    candidates = await run_in_threadpool(area_resolver.discover, bounds, saved)
    applied = session_state.apply_area(token, candidates)
    return AreaResponse(
        applied=applied,
        suggestions=[CandidateResponse.from_candidate(c) for c in candidates],
    )


@router.get("/area", response_model=List[CandidateResponse])
async def get_area_suggestions():
    return [CandidateResponse.from_candidate(c) for c in get_default_search_session().suggested]


@router.delete("/area/{candidate_id}", status_code=204)
async def dismiss_area_suggestion(candidate_id: str):
    if not get_default_search_session().dismiss_suggested(candidate_id):
        raise HTTPException(status_code=404, detail="Suggestion not found")
