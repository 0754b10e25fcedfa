"""
Saved-place repository backed by SQLAlchemy/SQLite.

The saved set is an ordered list; every mutation commits as one unit so
readers always see a consistent snapshot.
"""
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from domain.models import Category, Coordinate, Place, PlaceType, image_url
from repositories.models import PlaceORM


DEMO_PLACES: List[Place] = [
    Place(
        id="1",
        name="Lazarus Island",
        coordinate=Coordinate(1.226, 103.855),
        description="A tranquil beach getaway just a short ferry ride from the city. Perfect for picnics and escaping the crowds.",
        category=Category.HIDDEN_GEM,
        place_type=PlaceType.ACTIVITY,
        image=image_url("lazarus"),
    ),
    Place(
        id="2",
        name="Merlion Park",
        coordinate=Coordinate(1.2868, 103.8545),
        description="The iconic symbol of Singapore. Extremely crowded with tourists trying to get the perfect water-spout selfie.",
        category=Category.TOURIST_TRAP,
        place_type=PlaceType.ACTIVITY,
        image=image_url("merlion"),
        visited=True,
    ),
    Place(
        id="3",
        name="Tiong Bahru Bakery",
        coordinate=Coordinate(1.2874, 103.8324),
        description="Famous for croissants, but retains a lovely neighborhood vibe despite its popularity. Great coffee.",
        category=Category.HIDDEN_GEM,
        place_type=PlaceType.CAFE,
        image=image_url("tiongbahru"),
    ),
    Place(
        id="4",
        name="Gardens by the Bay",
        coordinate=Coordinate(1.2816, 103.8636),
        description="Futuristic park featuring Supertree Grove. Spectacular, but expect massive crowds and expensive entry fees for domes.",
        category=Category.TOURIST_TRAP,
        place_type=PlaceType.ACTIVITY,
        image=image_url("gardens"),
    ),
    Place(
        id="5",
        name="Haji Lane",
        coordinate=Coordinate(1.3007, 103.8577),
        description="Narrow lane filled with vibrant street art, indie boutiques, and hip cafes. Lively atmosphere at night.",
        category=Category.HIDDEN_GEM,
        place_type=PlaceType.ACTIVITY,
        image=image_url("haji"),
        visited=True,
    ),
]


def _place_from_orm(orm: PlaceORM) -> Place:
    return Place(
        id=orm.id,
        name=orm.name,
        coordinate=Coordinate(orm.lat, orm.lng),
        description=orm.description or "",
        category=Category(orm.category),
        place_type=PlaceType(orm.place_type),
        image=orm.image or "",
        address=orm.address,
        visited=bool(orm.visited),
        rating=orm.rating,
    )


def _orm_from_place(place: Place, position: int) -> PlaceORM:
    return PlaceORM(
        id=place.id,
        position=position,
        name=place.name,
        lat=place.coordinate.lat,
        lng=place.coordinate.lng,
        description=place.description,
        category=place.category.value,
        place_type=place.place_type.value,
        image=place.image,
        address=place.address,
        visited=place.visited,
        rating=place.rating,
    )


class SavedPlacesRepository:
    """Ordered CRUD for the saved set."""

    def list_places(self, session: Session) -> List[Place]:
        rows = session.query(PlaceORM).order_by(PlaceORM.position.asc(), PlaceORM.created_at.asc()).all()
        return [_place_from_orm(r) for r in rows]

    def get_place(self, session: Session, place_id: str) -> Optional[Place]:
        orm = session.get(PlaceORM, place_id)
        return _place_from_orm(orm) if orm else None

    def add_place(self, session: Session, place: Place) -> Place:
        """Append ``place`` to the end of the saved set."""
        if session.get(PlaceORM, place.id) is not None:
            raise ValueError(f"Place {place.id} already saved")
        last = session.query(func.max(PlaceORM.position)).scalar()
        orm = _orm_from_place(place, 0 if last is None else last + 1)
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _place_from_orm(orm)

    def remove_place(self, session: Session, place_id: str) -> bool:
        orm = session.get(PlaceORM, place_id)
        if not orm:
            return False
        session.delete(orm)
        session.commit()
        return True

    def reorder(self, session: Session, ordered_ids: Sequence[str]) -> List[Place]:
        """Replace the order wholesale. ``ordered_ids`` must be a permutation of the saved ids."""
        rows = {r.id: r for r in session.query(PlaceORM).all()}
        if len(ordered_ids) != len(rows) or set(ordered_ids) != set(rows):
            raise ValueError("Reorder must list every saved place exactly once")
        for position, place_id in enumerate(ordered_ids):
            rows[place_id].position = position
        session.commit()
        return self.list_places(session)

    def toggle_visited(self, session: Session, place_id: str) -> Optional[Place]:
        orm = session.get(PlaceORM, place_id)
        if not orm:
            return None
        orm.visited = not orm.visited
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _place_from_orm(orm)

    def seed_if_empty(self, session: Session, places: Sequence[Place] = DEMO_PLACES) -> int:
        if session.query(func.count(PlaceORM.id)).scalar():
            return 0
        for position, place in enumerate(places):
            session.add(_orm_from_place(place, position))
        session.commit()
        return len(places)
