import json
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import search as search_router
from domain.models import Coordinate, Place
from services.orchestrator import ResolutionOrchestrator, build_text_resolvers
from services.places_types import TransportError
from services.precision_hint import default_hint_extractor
from services.resolvers import AreaDiscoveryResolver, ReverseGeocodeResolver, SuggestionResolver
from services.search_session import SearchSession, SuggestionFetchers

from fakes import FakeDirectory, FakeStructured, hit

SAVED = [
    Place(id="2", name="Merlion Park", coordinate=Coordinate(1.2868, 103.8545)),
]


class DummySession:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeAreaClient:
    def __init__(self, elements):
        self.elements = elements

    def discover(self, bounds):
        return list(self.elements)


@pytest.fixture
def state(monkeypatch):
    session_state = SearchSession()
    monkeypatch.setattr(search_router, "get_default_search_session", lambda: session_state)
    monkeypatch.setattr(search_router, "SessionLocal", DummySession)
    monkeypatch.setattr(search_router.places_repo, "list_places", lambda session: list(SAVED))
    return session_state


@pytest.fixture
def directory():
    return FakeDirectory(
        {
            "427630 Singapore": [hit(1.3126, 103.9034)],
            "haji": [hit(1.3007, 103.8577, label="Haji Lane, Kampong Glam, Singapore", place_id="77")],
        },
        reverse_data={"display_name": "Fullerton Rd, Singapore", "address": {"tourism": "Merlion"}},
    )


@pytest.fixture
def client(state, directory, monkeypatch):
    structured = FakeStructured(json.dumps({
        "name": "Joo Chiat Bakery",
        "address": "376 Joo Chiat Rd, Singapore 427630",
        "coordinates": None,
        "description": "Buns.",
        "category": "Hidden Gem",
        "placeType": "Cafe",
    }))
    orchestrator = ResolutionOrchestrator(
        build_text_resolvers(structured, directory, default_hint_extractor(), "Singapore")
    )
    suggestions = SuggestionResolver(directory, limit=5)
    monkeypatch.setattr(search_router, "get_default_orchestrator", lambda: orchestrator)
    monkeypatch.setattr(search_router, "reverse_resolver", ReverseGeocodeResolver(directory))
    monkeypatch.setattr(search_router, "suggestion_resolver", suggestions)
    monkeypatch.setattr(search_router, "suggestion_fetchers", SuggestionFetchers(suggestions, 0, 3))

    app = FastAPI()
    app.include_router(search_router.router, prefix="/search")
    return TestClient(app)


def test_blank_search_is_idle(client, directory):
    resp = client.post("/search", json={"query": "   "})
    assert resp.status_code == 200
    assert resp.json()["state"] == "idle"
    assert directory.queries == []


def test_search_fills_result_slot(client, state):
    resp = client.post("/search", json={"query": "joo chiat bakery"})
    data = resp.json()

    assert data["state"] == "found"
    assert data["applied"] is True
    assert data["candidate"]["tier"] == "1a"
    assert data["candidate"]["coordinate"] == {"lat": 1.3126, "lng": 103.9034}
    assert state.current_result.name == "Joo Chiat Bakery"

    assert client.get("/search/result").json()["name"] == "Joo Chiat Bakery"
    assert client.delete("/search/result").status_code == 204
    assert client.get("/search/result").json() is None


def test_local_match_reports_saved_place(client, state):
    data = client.post("/search", json={"query": "MERLION"}).json()
    assert data["candidate"]["savedPlaceId"] == "2"
    assert data["candidate"]["tier"] == "0"
    assert state.current_result is None


def test_save_result_promotes_candidate(client, state):
    client.post("/search", json={"query": "joo chiat bakery"})
    saved = []

    def fake_add(session, place):
        saved.append(place)
        return place

    with patch.object(search_router.places_repo, "add_place", side_effect=fake_add):
        resp = client.post("/search/result/save")

    assert resp.status_code == 201
    assert saved[0].name == "Joo Chiat Bakery"
    assert resp.json()["id"] != "temp-search-result"
    assert state.current_result is None
    assert client.post("/search/result/save").status_code == 404


def test_suggestions_and_selection(client, state):
    data = client.get("/search/suggestions", params={"q": "haji"}).json()
    assert data["superseded"] is False
    suggestion = data["suggestions"][0]
    assert suggestion["display_name"] == "Haji Lane, Kampong Glam, Singapore"

    picked = client.post("/search/suggestions/select", json=suggestion).json()
    assert picked["name"] == "Haji Lane"
    assert picked["tier"] == "suggestion"
    assert state.current_result.name == "Haji Lane"


def test_reverse_always_yields_draft(client, directory):
    data = client.post("/search/reverse", json={"lat": 1.2868, "lng": 103.8545}).json()
    assert data["name"] == "Merlion"
    assert data["coordinate"] == {"lat": 1.2868, "lng": 103.8545}

    directory.reverse_data = TransportError("down")
    data = client.post("/search/reverse", json={"lat": 1.2868, "lng": 103.8545}).json()
    assert data["name"] == "Unknown Location"


def test_reverse_rejects_out_of_range_click(client):
    assert client.post("/search/reverse", json={"lat": 95, "lng": 103.8}).status_code == 422


def test_area_search_filters_saved_names_and_replaces_suggestions(client, state, monkeypatch):
    from services.places_types import AreaElement

    elements = [
        AreaElement("10", Coordinate(1.2868, 103.8545), {"name": "Merlion Park", "tourism": "attraction"}),
        AreaElement("11", Coordinate(1.2850, 103.8520), {"name": "Atlas", "amenity": "bar"}),
    ]
    monkeypatch.setattr(search_router, "area_resolver", AreaDiscoveryResolver(FakeAreaClient(elements)))

    bounds = {"south": 1.28, "west": 103.84, "north": 1.30, "east": 103.86}
    data = client.post("/search/area", json=bounds).json()

    assert data["applied"] is True
    assert [s["id"] for s in data["suggestions"]] == ["sugg-11"]
    assert [s["name"] for s in client.get("/search/area").json()] == ["Atlas"]

    assert client.delete("/search/area/sugg-11").status_code == 204
    assert client.delete("/search/area/sugg-11").status_code == 404


def test_area_search_rejects_inverted_bounds(client):
    bounds = {"south": 1.30, "west": 103.84, "north": 1.28, "east": 103.86}
    assert client.post("/search/area", json=bounds).status_code == 422
