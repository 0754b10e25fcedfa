"""Geocoding directory helpers using OpenStreetMap Nominatim.

Forward search (free text -> ranked hits) and reverse lookup (coordinate ->
address breakdown), both region-restricted and sharing one rate limit.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any, List, Optional

import requests

from domain.models import Coordinate
from services.places_types import DirectoryHit, MalformedResponse, RateLimited, TransportError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = settings.NOMINATIM_MIN_INTERVAL
_logged_ua = False

FALLBACK_UA = "hidden-gems-api/0.1 (contact: example@example.com)"
if settings.NOMINATIM_USER_AGENT is None:
    logger.warning(
        "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
        "This may violate Nominatim usage policy."
    )


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


_ua_value = settings.NOMINATIM_USER_AGENT or FALLBACK_UA
NOMINATIM_HEADERS = {
    "User-Agent": _ua_value,
}
if settings.NOMINATIM_REFERER:
    NOMINATIM_HEADERS["Referer"] = settings.NOMINATIM_REFERER


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _hit_from_item(item: dict) -> Optional[DirectoryHit]:
    coordinate = Coordinate.parse(item.get("lat"), item.get("lon"))
    if coordinate is None:
        return None
    address = item.get("address")
    return DirectoryHit(
        place_id=str(item.get("place_id", "")),
        coordinate=coordinate,
        label=_text(item.get("display_name")) or "",
        name=_text(item.get("name")),
        category=_text(item.get("category")) or _text(item.get("class")),
        type=_text(item.get("type")),
        address=address if isinstance(address, dict) else {},
        raw=item,
    )


class DirectoryClient:
    """Region-restricted Nominatim client.

    Transport problems raise ``TransportError`` (or ``RateLimited`` on HTTP 429);
    an empty result list is returned as-is so callers can decide whether that
    means escalation.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        country_code: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        base = (base_url or settings.NOMINATIM_BASE_URL).rstrip("/")
        for suffix in ("/search", "/reverse"):
            if base.endswith(suffix):
                base = base[: -len(suffix)]
        self.base_url = base
        self.country_code = country_code if country_code is not None else settings.REGION_COUNTRY_CODE
        self.timeout = timeout or settings.NOMINATIM_TIMEOUT_SECONDS

    def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        global _logged_ua
        if not _logged_ua:
            logger.debug("Nominatim User-Agent: %s", _redact_email(_ua_value))
            _logged_ua = True

        url = f"{self.base_url}/{path}"
        try:
            resp = _throttled_get(url, params=params, headers=NOMINATIM_HEADERS, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Nominatim {path} request failed: {exc}") from exc

        status = getattr(resp, "status_code", 200)
        if status == 429:
            raise RateLimited("The map directory is rate limiting requests. Please try again shortly.")
        if status >= 400:
            raise TransportError(f"Nominatim {path} returned HTTP {status}", status_code=status)

        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"Nominatim {path} returned a non-JSON body") from exc

    def search(self, query: str, limit: int = 1, address_details: bool = False) -> List[DirectoryHit]:
        """Forward-geocode ``query``; hits are in the directory's ranking order."""
        params = {
            "format": "jsonv2",
            "q": query,
            "limit": str(limit),
        }
        if self.country_code:
            params["countrycodes"] = self.country_code
        if address_details:
            params["addressdetails"] = "1"

        data = self._get_json("search", params)
        if not isinstance(data, list):
            raise MalformedResponse("Nominatim search did not return a list")

        hits: List[DirectoryHit] = []
        for item in data[:limit]:
            if not isinstance(item, dict):
                continue
            hit = _hit_from_item(item)
            if hit is not None:
                hits.append(hit)
        logger.debug("[GEOCODE] search q=%r limit=%d got %d hits", query, limit, len(hits))
        return hits

    def reverse(self, coordinate: Coordinate, zoom: int = 18) -> dict:
        """Reverse-geocode with address details; returns the raw Nominatim object."""
        params = {
            "format": "jsonv2",
            "lat": str(coordinate.lat),
            "lon": str(coordinate.lng),
            "zoom": str(zoom),
            "addressdetails": "1",
        }
        data = self._get_json("reverse", params)
        if not isinstance(data, dict):
            raise MalformedResponse("Nominatim reverse did not return an object")
        if data.get("error"):
            logger.info("[GEOCODE] reverse %s,%s: %s", coordinate.lat, coordinate.lng, data["error"])
            return {}
        return data


_default_directory_client: Optional[DirectoryClient] = None


def get_default_directory_client() -> DirectoryClient:
    global _default_directory_client
    if _default_directory_client is None:
        _default_directory_client = DirectoryClient()
    return _default_directory_client
