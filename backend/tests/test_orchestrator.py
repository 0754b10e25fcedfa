import json
from unittest.mock import MagicMock, patch

import pytest

from domain.models import Category, ConfidenceTier, Coordinate, Place, PlaceType
from services.orchestrator import ResolutionOrchestrator, ResolutionState, build_text_resolvers, not_found_notice
from services.places_types import MalformedResponse, RateLimited, TransportError
from services.precision_hint import default_hint_extractor
from services.structured_knowledge import StructuredKnowledgeClient

from fakes import FakeDirectory, FakeStructured, hit

SAVED = [
    Place(id="1", name="Lazarus Island", coordinate=Coordinate(1.226, 103.855)),
    Place(id="2", name="Merlion Park", coordinate=Coordinate(1.2868, 103.8545), category=Category.TOURIST_TRAP),
    Place(id="9", name="Merlion Café", coordinate=Coordinate(1.287, 103.854)),
]


def _structured_body(**overrides):
    data = {
        "name": "Chin Mee Chin Confectionery",
        "address": "204 East Coast Rd, Singapore 428903",
        "coordinates": None,
        "description": "Old-school kopitiam.",
        "category": "Hidden Gem",
        "placeType": "Cafe",
    }
    data.update(overrides)
    return json.dumps(data)


def _orchestrator(structured, directory):
    return ResolutionOrchestrator(
        build_text_resolvers(
            structured=structured,
            directory=directory,
            extractor=default_hint_extractor(),
            region="Singapore",
        )
    )


def test_empty_query_is_idle_noop():
    structured, directory = FakeStructured(), FakeDirectory()
    outcome = _orchestrator(structured, directory).resolve("   ", SAVED)
    assert outcome.state is ResolutionState.IDLE
    assert outcome.candidate is None
    assert structured.queries == []
    assert directory.queries == []


def test_local_match_makes_no_remote_calls():
    structured, directory = FakeStructured(), FakeDirectory()
    outcome = _orchestrator(structured, directory).resolve("merlion", SAVED)

    assert outcome.state is ResolutionState.FOUND
    assert outcome.candidate.tier is ConfidenceTier.EXACT_LOCAL
    # First match in saved-set order wins.
    assert outcome.candidate.saved_place_id == "2"
    assert structured.queries == []
    assert directory.queries == []


def test_structured_coordinates_are_used_directly():
    structured = FakeStructured(_structured_body(coordinates={"lat": 1.3049, "lng": 103.9061}))
    directory = FakeDirectory()
    outcome = _orchestrator(structured, directory).resolve("chin mee chin", SAVED)

    assert outcome.candidate.tier is ConfidenceTier.STRUCTURED
    assert outcome.candidate.coordinate == Coordinate(1.3049, 103.9061)
    assert outcome.candidate.name == "Chin Mee Chin Confectionery"
    assert outcome.candidate.place_type is PlaceType.CAFE
    assert structured.queries == ["chin mee chin"]
    assert directory.queries == []


def test_postal_code_seeds_directory_query():
    structured = FakeStructured(_structured_body(address="376 Joo Chiat Rd, Singapore 427630"))
    directory = FakeDirectory({"427630 Singapore": [hit(1.3126, 103.9034)]})

    outcome = _orchestrator(structured, directory).resolve("some bakery", SAVED)

    assert directory.queries == ["427630 Singapore"]
    assert outcome.candidate.tier is ConfidenceTier.POSTAL_CODE
    assert outcome.candidate.coordinate == Coordinate(1.3126, 103.9034)
    assert outcome.candidate.address == "376 Joo Chiat Rd, Singapore 427630"


def test_address_without_postal_code_seeds_directory_query():
    structured = FakeStructured(_structured_body(address="204 East Coast Rd"))
    directory = FakeDirectory({"204 East Coast Rd Singapore": [hit(1.305, 103.906)]})

    outcome = _orchestrator(structured, directory).resolve("chin mee chin", SAVED)

    assert directory.queries == ["204 East Coast Rd Singapore"]
    assert outcome.candidate.tier is ConfidenceTier.ADDRESS


def test_short_address_falls_back_to_name_query():
    structured = FakeStructured(_structured_body(address="SG"))
    directory = FakeDirectory({"Chin Mee Chin Confectionery Singapore": [hit(1.305, 103.906)]})

    outcome = _orchestrator(structured, directory).resolve("chin mee chin", SAVED)

    assert directory.queries == ["Chin Mee Chin Confectionery Singapore"]
    assert outcome.candidate.tier is ConfidenceTier.NAME


def test_invalid_structured_output_falls_back_to_raw_query():
    structured = FakeStructured('{"name": "X", "category": "Must See"}')
    directory = FakeDirectory({
        "haji lane Singapore": [hit(1.3007, 103.8577, label="Haji Lane, Singapore")],
    })

    outcome = _orchestrator(structured, directory).resolve("  haji lane ", SAVED)

    assert directory.queries == ["haji lane Singapore"]
    assert outcome.candidate.tier is ConfidenceTier.FALLBACK
    assert outcome.candidate.name == "haji lane"
    assert [a.result for a in outcome.attempts] == ["empty", "soft_failure", "found"]
    assert "category" in outcome.attempts[1].detail


def test_structured_directory_miss_escalates_to_fallback():
    structured = FakeStructured(_structured_body(address="376 Joo Chiat Rd, Singapore 427630"))
    directory = FakeDirectory({"some bakery Singapore": [hit(1.31, 103.90)]})

    outcome = _orchestrator(structured, directory).resolve("some bakery", SAVED)

    assert directory.queries == ["427630 Singapore", "some bakery Singapore"]
    assert outcome.candidate.tier is ConfidenceTier.FALLBACK


def test_every_tier_empty_yields_single_not_found_notice():
    structured = FakeStructured(TransportError("down"))
    directory = FakeDirectory()

    outcome = _orchestrator(structured, directory).resolve("zzqx", SAVED)

    assert outcome.state is ResolutionState.NOT_FOUND
    assert outcome.candidate is None
    assert outcome.notices == [not_found_notice("zzqx")]
    assert directory.queries == ["zzqx Singapore"]


def test_rate_limit_is_reported_and_pipeline_continues():
    structured = FakeStructured(RateLimited("Quota exceeded for today"))
    directory = FakeDirectory({"zzqx Singapore": [hit(1.3, 103.8)]})

    outcome = _orchestrator(structured, directory).resolve("zzqx", SAVED)

    assert outcome.found
    assert outcome.rate_limited
    assert outcome.notices == ["Quota exceeded for today"]
    assert structured.queries == ["zzqx"]


def test_resolution_is_repeatable_for_same_inputs():
    structured = FakeStructured(_structured_body(address="376 Joo Chiat Rd, Singapore 427630"))
    directory = FakeDirectory({"427630 Singapore": [hit(1.3126, 103.9034)]})
    orchestrator = _orchestrator(structured, directory)

    first = orchestrator.resolve("some bakery", SAVED)
    second = orchestrator.resolve("some bakery", SAVED)

    assert first.candidate == second.candidate
    assert [a.result for a in first.attempts] == [a.result for a in second.attempts]


def test_each_resolver_attempted_at_most_once():
    class CountingResolver:
        name = "counting"
        tier = ConfidenceTier.FALLBACK

        def __init__(self, exc):
            self.calls = 0
            self.exc = exc

        def attempt(self, request):
            self.calls += 1
            raise self.exc

    resolvers = [CountingResolver(MalformedResponse("bad", errors=["x: y"])), CountingResolver(TransportError("down"))]
    outcome = ResolutionOrchestrator(resolvers).resolve("anything")

    assert outcome.state is ResolutionState.NOT_FOUND
    assert [r.calls for r in resolvers] == [1, 1]
    assert outcome.attempts[0].detail == "bad (x: y)"


@pytest.mark.parametrize(
    "envelope",
    [
        {"candidates": [{"content": {"parts": [{"text": None}]}}]},
        {"candidates": [{"content": "blocked"}]},
    ],
)
def test_broken_structured_envelope_still_reaches_fallback(envelope):
    structured = StructuredKnowledgeClient(api_key="k", model="m", base_url="https://gemini.test", region="Singapore")
    directory = FakeDirectory({"zzqx Singapore": [hit(1.3, 103.8)]})
    response = MagicMock(status_code=200)
    response.json.return_value = envelope

    with patch("services.structured_knowledge._session.post", return_value=response):
        outcome = _orchestrator(structured, directory).resolve("zzqx", SAVED)

    assert outcome.state is ResolutionState.FOUND
    assert outcome.candidate.tier is ConfidenceTier.FALLBACK
    assert outcome.attempts[1].result == "soft_failure"
