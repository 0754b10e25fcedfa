import json

import pytest

from domain.models import Category, ConfidenceTier, Coordinate, PlaceType
from services.places_types import AreaElement, MalformedResponse
from services.result_normalizer import (
    AREA_DESCRIPTION,
    UNKNOWN_LOCATION,
    candidate_from_area_element,
    candidate_from_directory_hit,
    candidate_from_reverse,
    candidate_from_suggestion,
    parse_structured_payload,
    place_type_from_area_tags,
)

from fakes import hit


def _payload(**overrides):
    data = {
        "name": "Birds of Paradise",
        "address": "63 East Coast Rd, Singapore 428776",
        "coordinates": None,
        "description": "Botanical gelato.",
        "category": "Hidden Gem",
        "placeType": "Cafe",
    }
    data.update(overrides)
    return json.dumps(data)


def test_parse_structured_payload_accepts_valid_body():
    payload = parse_structured_payload(_payload())
    assert payload.name == "Birds of Paradise"
    assert payload.category is Category.HIDDEN_GEM
    assert payload.place_type is PlaceType.CAFE
    assert payload.coordinate() is None


def test_parse_structured_payload_strips_code_fence_and_reads_coordinates():
    body = "```json\n" + _payload(coordinates={"lat": 1.3056, "lng": 103.9053}) + "\n```"
    payload = parse_structured_payload(body)
    assert payload.coordinate() == Coordinate(1.3056, 103.9053)


def test_out_of_range_coordinates_count_as_absent():
    payload = parse_structured_payload(_payload(coordinates={"lat": 123.0, "lng": 103.9}))
    assert payload.coordinate() is None


def test_parse_structured_payload_lists_bad_fields():
    with pytest.raises(MalformedResponse) as exc_info:
        parse_structured_payload(_payload(name="", category="Must See"))
    errors = " ".join(exc_info.value.errors)
    assert "name" in errors
    assert "category" in errors


@pytest.mark.parametrize("body", [None, "", "not json", "[1, 2]"])
def test_parse_structured_payload_rejects_non_objects(body):
    with pytest.raises(MalformedResponse):
        parse_structured_payload(body)


@pytest.mark.parametrize(
    "tags,expected",
    [
        ({"amenity": "restaurant"}, PlaceType.RESTAURANT),
        ({"amenity": "cafe"}, PlaceType.CAFE),
        ({"amenity": "pub"}, PlaceType.BAR),
        ({"tourism": "museum"}, PlaceType.ACTIVITY),
        ({"tourism": "viewpoint"}, PlaceType.OTHER),
        ({"amenity": "bar", "tourism": "attraction"}, PlaceType.BAR),
    ],
)
def test_place_type_from_area_tags(tags, expected):
    assert place_type_from_area_tags(tags) is expected


def test_directory_hit_candidate_falls_back_to_query_name():
    candidate = candidate_from_directory_hit(
        hit(1.3, 103.8, label="Haji Lane, Kampong Glam, Singapore", category="highway", type="pedestrian"),
        "haji lane",
        ConfidenceTier.FALLBACK,
    )
    assert candidate.name == "haji lane"
    assert candidate.tier is ConfidenceTier.FALLBACK
    assert candidate.address == "Haji Lane, Kampong Glam, Singapore"
    assert candidate.place_type is PlaceType.OTHER


def test_suggestion_candidate_prefers_venue_fields():
    h = hit(
        1.28,
        103.84,
        label="Lau Pa Sat, 18 Raffles Quay, Singapore",
        address={"road": "Raffles Quay", "amenity": "Lau Pa Sat"},
        category="amenity",
        type="restaurant",
    )
    candidate = candidate_from_suggestion(h)
    assert candidate.name == "Lau Pa Sat"
    assert candidate.place_type is PlaceType.RESTAURANT
    assert candidate.description == "Found at: Lau Pa Sat, 18 Raffles Quay, Singapore"


def test_suggestion_candidate_uses_label_head_without_venue_fields():
    candidate = candidate_from_suggestion(hit(1.28, 103.84, label="Raffles Quay, Downtown Core, Singapore"))
    assert candidate.name == "Raffles Quay"


def test_reverse_candidate_keeps_clicked_coordinate():
    clicked = Coordinate(1.2901, 103.8519)
    candidate = candidate_from_reverse(
        clicked,
        {"display_name": "Some Road, Singapore", "address": {"road": "Some Road", "amenity": "cafe"}},
    )
    assert candidate.coordinate == clicked
    assert candidate.name == "cafe"
    assert candidate.place_type is PlaceType.CAFE
    assert candidate.address == "Some Road, Singapore"


def test_reverse_candidate_without_address_is_unknown_location():
    candidate = candidate_from_reverse(Coordinate(1.29, 103.85), {})
    assert candidate.name == UNKNOWN_LOCATION
    assert candidate.address is None


def test_area_candidate_shape():
    element = AreaElement(element_id="42", coordinate=Coordinate(1.3, 103.8), tags={"name": "Atlas", "amenity": "bar"})
    candidate = candidate_from_area_element(element)
    assert candidate.id == "sugg-42"
    assert candidate.name == "Atlas"
    assert candidate.description == AREA_DESCRIPTION
    assert candidate.category is Category.HIDDEN_GEM
    assert candidate.place_type is PlaceType.BAR
    assert candidate.tier is ConfidenceTier.AREA


def test_suggestion_candidate_without_label_is_unknown_location():
    assert candidate_from_suggestion(hit(1.28, 103.84, label="")).name == UNKNOWN_LOCATION
