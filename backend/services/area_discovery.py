"""
Area discovery: points of interest inside a map viewport via the Overpass API.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import requests

from domain.models import BoundingBox, Coordinate
from services.places_types import AreaElement
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

AMENITY_FILTER = "restaurant|cafe|bar|pub"
TOURISM_FILTER = "attraction|viewpoint|museum"


def build_area_query(bounds: BoundingBox, timeout_seconds: int, result_cap: int) -> str:
    bbox = bounds.as_overpass()
    return (
        f"[out:json][timeout:{timeout_seconds}];\n"
        "(\n"
        f'  node["name"]["amenity"~"{AMENITY_FILTER}"]({bbox});\n'
        f'  node["name"]["tourism"~"{TOURISM_FILTER}"]({bbox});\n'
        ");\n"
        f"out body {result_cap};\n"
    )


def _element_from_item(item: dict) -> Optional[AreaElement]:
    tags = item.get("tags")
    if not isinstance(tags, dict) or not tags.get("name"):
        return None
    coordinate = Coordinate.parse(item.get("lat"), item.get("lon"))
    if coordinate is None:
        return None
    return AreaElement(
        element_id=str(item.get("id", "")),
        coordinate=coordinate,
        tags={str(k): str(v) for k, v in tags.items()},
    )


class AreaDiscoveryClient:
    """Tag-filtered POI search. Any failure yields an empty list and a log line."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        result_cap: Optional[int] = None,
    ):
        self.url = url or settings.OVERPASS_URL
        self.timeout_seconds = timeout_seconds or settings.OVERPASS_TIMEOUT_SECONDS
        self.result_cap = result_cap or settings.OVERPASS_RESULT_CAP

    def discover(self, bounds: BoundingBox) -> List[AreaElement]:
        query = build_area_query(bounds, self.timeout_seconds, self.result_cap)
        try:
            resp = _session.post(
                self.url,
                data={"data": query},
                # Client-side allowance on top of the server-side [timeout:N].
                timeout=self.timeout_seconds + 5,
            )
        except requests.RequestException as exc:
            logger.warning("Overpass request failed for bbox=%s: %s", bounds.as_overpass(), exc)
            return []

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning("Overpass API error %s for bbox=%s", resp.status_code, bounds.as_overpass())
            return []

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Overpass JSON error for bbox=%s: %s", bounds.as_overpass(), exc)
            return []

        if not isinstance(data, dict):
            logger.warning("Overpass returned an unexpected body for bbox=%s", bounds.as_overpass())
            return []

        elements: List[AreaElement] = []
        for item in data.get("elements") or []:
            if not isinstance(item, dict):
                continue
            element = _element_from_item(item)
            if element is not None:
                elements.append(element)
        if not elements:
            logger.info("No places found in bbox=%s", bounds.as_overpass())
        return elements


_default_area_client: Optional[AreaDiscoveryClient] = None


def get_default_area_client() -> AreaDiscoveryClient:
    global _default_area_client
    if _default_area_client is None:
        _default_area_client = AreaDiscoveryClient()
    return _default_area_client
