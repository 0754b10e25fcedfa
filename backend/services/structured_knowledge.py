"""
Client for the search-grounded generative service (Gemini ``generateContent``).

Only the request/response contract the resolvers need is implemented: a prompt
plus either a JSON response schema or a forced function declaration. Every
failure is raised as a ``SoftFailure`` subclass so callers can move on.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from services.places_types import MalformedResponse, RateLimited, TransportError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

CATEGORY_VALUES = ["Hidden Gem", "Tourist Trap"]
PLACE_TYPE_VALUES = ["Restaurant", "Bar", "Cafe", "Activity", "Other"]

PLACE_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "address": {"type": "STRING"},
        "coordinates": {
            "type": "OBJECT",
            "properties": {
                "lat": {"type": "NUMBER"},
                "lng": {"type": "NUMBER"},
            },
            "nullable": True,
        },
        "description": {"type": "STRING"},
        "category": {"type": "STRING", "enum": CATEGORY_VALUES},
        "placeType": {"type": "STRING", "enum": PLACE_TYPE_VALUES},
    },
    "required": ["name", "address", "description", "category", "placeType"],
}

PLACE_LOOKUP_PROMPT = """
Search for the place "{query}" in {region}.
I need to place a pin on a map.

Return a JSON object with the following fields:
- name: The official name of the place.
- address: The full address including postal code.
- coordinates: {{ lat: number, lng: number }} (Try to find the exact coordinates. If not found, return null).
- description: A short 1 sentence description.
- category: "Hidden Gem" or "Tourist Trap" (Guess based on popularity).
- placeType: "Restaurant", "Bar", "Cafe", "Activity", or "Other".

Important:
- If the user searches for a vague name, find the most likely specific place.
- The postal code is the most accurate way to locate a building, include it when one exists.

Response format: JSON only.
"""

DEFAULT_RATE_LIMIT_MESSAGE = "AI lookups have reached their usage limit. Please try again later."


def _error_details(resp: requests.Response) -> tuple[str, str]:
    """Return (status, message) from a Google API error body, if any."""
    try:
        body = resp.json()
    except ValueError:
        return "", (getattr(resp, "text", "") or "")[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return "", ""
    return str(error.get("status") or ""), str(error.get("message") or "")


def _first_candidate(data: Dict[str, Any]) -> Dict[str, Any]:
    candidates = data.get("candidates")
    if not candidates:
        feedback = data.get("promptFeedback")
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        raise MalformedResponse(f"No candidates in response{f' ({reason})' if reason else ''}")
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise MalformedResponse("Response candidates have an unexpected shape")
    return candidates[0]


def _candidate_parts(candidate: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = candidate.get("content")
    if content is None:
        return []
    if not isinstance(content, dict):
        raise MalformedResponse("Response content is not an object")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise MalformedResponse("Response parts are not a list")
    return [p for p in parts if isinstance(p, dict)]


def response_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    parts = _candidate_parts(_first_candidate(data))
    text = "".join(p["text"] for p in parts if isinstance(p.get("text"), str))
    if not text.strip():
        raise MalformedResponse("No text in response")
    return text


def function_calls(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the ``functionCall`` parts of the first candidate."""
    parts = _candidate_parts(_first_candidate(data))
    return [p["functionCall"] for p in parts if isinstance(p.get("functionCall"), dict)]


def grounding_sources(data: Dict[str, Any]) -> List[Dict[str, str]]:
    """Web sources ({uri, title}) the answer was grounded on; never raises."""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return []
    metadata = candidates[0].get("groundingMetadata")
    chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
    sources: List[Dict[str, str]] = []
    for chunk in chunks if isinstance(chunks, list) else []:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        uri, title = web.get("uri"), web.get("title")
        if isinstance(uri, str) and uri and isinstance(title, str) and title:
            sources.append({"uri": uri, "title": title})
    return sources


class StructuredKnowledgeClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        region: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS
        self.region = region or settings.REGION_NAME

    def generate(self, body: Dict[str, Any], model: Optional[str] = None) -> Dict[str, Any]:
        """POST a generateContent request and return the decoded response."""
        if not self.api_key:
            raise TransportError("GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{model or self.model}:generateContent"
        try:
            resp = _session.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Gemini request failed: {exc}") from exc

        if resp.status_code >= 400:
            status, message = _error_details(resp)
            if resp.status_code == 429 or status == "RESOURCE_EXHAUSTED" or "quota" in message.lower():
                raise RateLimited(message or DEFAULT_RATE_LIMIT_MESSAGE)
            raise TransportError(
                f"Gemini returned HTTP {resp.status_code}: {message or status}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponse("Gemini returned a non-JSON envelope") from exc
        if not isinstance(data, dict):
            raise MalformedResponse("Gemini returned an unexpected envelope")
        return data

    def generate_json(self, prompt: str, schema: Dict[str, Any]) -> str:
        """Search-grounded prompt answered as JSON matching ``schema``; returns the raw text."""
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "tools": [{"google_search": {}}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        return response_text(self.generate(body))

    def lookup_place(self, query: str) -> str:
        """Ask for one place as JSON; returns the raw JSON text for validation."""
        logger.debug("[AI] lookup_place q=%r model=%s", query, self.model)
        return self.generate_json(PLACE_LOOKUP_PROMPT.format(query=query, region=self.region), PLACE_RESPONSE_SCHEMA)


_default_structured_client: Optional[StructuredKnowledgeClient] = None


def get_default_structured_client() -> StructuredKnowledgeClient:
    global _default_structured_client
    if _default_structured_client is None:
        _default_structured_client = StructuredKnowledgeClient()
    return _default_structured_client
