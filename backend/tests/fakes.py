"""In-memory stand-ins for the remote collaborators."""
from typing import Dict, List, Optional

from domain.models import Coordinate
from services.places_types import DirectoryHit


def hit(lat: float, lng: float, label: str = "", name: Optional[str] = None, **kwargs) -> DirectoryHit:
    return DirectoryHit(
        place_id=kwargs.pop("place_id", "1"),
        coordinate=Coordinate(lat, lng),
        label=label,
        name=name,
        **kwargs,
    )


class FakeDirectory:
    def __init__(self, results: Optional[Dict[str, List[DirectoryHit]]] = None, reverse_data=None):
        self.results = results or {}
        self.reverse_data = reverse_data or {}
        self.queries: List[str] = []
        self.reverse_calls: List[Coordinate] = []

    def search(self, query: str, limit: int = 1, address_details: bool = False) -> List[DirectoryHit]:
        self.queries.append(query)
        return list(self.results.get(query, []))[:limit]

    def reverse(self, coordinate: Coordinate, zoom: int = 18) -> dict:
        self.reverse_calls.append(coordinate)
        if isinstance(self.reverse_data, Exception):
            raise self.reverse_data
        return self.reverse_data


class FakeStructured:
    def __init__(self, response=None):
        self.response = response
        self.queries: List[str] = []

    def lookup_place(self, query: str) -> str:
        self.queries.append(query)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def generate_json(self, prompt: str, schema: dict) -> str:
        self.queries.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response
