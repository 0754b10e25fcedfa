"""
Saved-set API routes, plus AI auto-fill for the add-place form.

Every mutation here is an explicit user action; the search pipeline only
ever reads snapshots of this collection.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from api.schemas import CamelModel, CoordinateSchema, PlaceResponse
from db import SessionLocal
from domain.models import Category, Place, PlaceType, image_url
from repositories import SavedPlacesRepository
from services.autofill import get_default_autofiller
from services.search_session import get_default_search_session

router = APIRouter()
places_repo = SavedPlacesRepository()
logger = logging.getLogger(__name__)


class PlaceCreate(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    coordinate: CoordinateSchema
    description: str = ""
    category: Category = Category.HIDDEN_GEM
    place_type: PlaceType = PlaceType.OTHER
    image: Optional[str] = None
    address: Optional[str] = None
    visited: bool = False
    rating: Optional[float] = None


class ReorderRequest(CamelModel):
    ids: List[str]


class AutoFillRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)


class AutoFillResponse(CamelModel):
    name: str
    description: str
    category: Category
    place_type: PlaceType
    address: Optional[str] = None
    coordinate: Optional[CoordinateSchema] = None
    tier: Optional[str] = None
    error: Optional[str] = None


@router.get("", response_model=List[PlaceResponse])
async def list_places():
    with SessionLocal() as session:
        return [PlaceResponse.from_domain(p) for p in places_repo.list_places(session)]


@router.post("", response_model=PlaceResponse, status_code=201)
async def add_place(body: PlaceCreate):
    """Append a place to the saved set (manual add, search result or suggestion)."""
    place_id = Place.generate_id()
    place = Place(
        id=place_id,
        name=body.name,
        coordinate=body.coordinate.to_domain(),
        description=body.description,
        category=body.category,
        place_type=body.place_type,
        image=body.image or image_url(place_id),
        address=body.address,
        visited=body.visited,
        rating=body.rating,
    )
    with SessionLocal() as session:
        saved = places_repo.add_place(session, place)
    get_default_search_session().on_place_saved(saved)
    logger.info("Saved place %s (%s)", saved.id, saved.name)
    return PlaceResponse.from_domain(saved)


@router.delete("/{place_id}", status_code=204)
async def remove_place(place_id: str):
    with SessionLocal() as session:
        if not places_repo.remove_place(session, place_id):
            raise HTTPException(status_code=404, detail="Place not found")


@router.put("/order", response_model=List[PlaceResponse])
async def reorder_places(body: ReorderRequest):
    with SessionLocal() as session:
        try:
            places = places_repo.reorder(session, body.ids)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    return [PlaceResponse.from_domain(p) for p in places]


@router.post("/{place_id}/visited", response_model=PlaceResponse)
async def toggle_visited(place_id: str):
    with SessionLocal() as session:
        place = places_repo.toggle_visited(session, place_id)
    if not place:
        raise HTTPException(status_code=404, detail="Place not found")
    return PlaceResponse.from_domain(place)


@router.post("/autofill", response_model=AutoFillResponse)
async def autofill_place(body: AutoFillRequest):
    """Suggest details and a pin for a place the user is adding by name."""
    result = await run_in_threadpool(get_default_autofiller().autofill, body.name)
    coordinate = result.coordinate
    return AutoFillResponse(
        name=result.name,
        description=result.description,
        category=result.category,
        place_type=result.place_type,
        address=result.address,
        coordinate=CoordinateSchema(lat=coordinate.lat, lng=coordinate.lng) if coordinate else None,
        tier=result.tier.value if result.tier else None,
        error=result.error,
    )
