"""
Resolution orchestrator: tiered fallback for free-text place search.

States run ``IDLE -> SEARCHING -> FOUND | NOT_FOUND``. Resolvers are attempted
once each, in order; the first to return a candidate ends the run and later
tiers are never invoked. Soft failures and empty lookups are absorbed here and
only the exhausted run surfaces a single "not found" notice.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from domain.models import Candidate, Place
from services.geocoding import DirectoryClient, get_default_directory_client
from services.places_types import LookupEmpty, RateLimited, SoftFailure
from services.precision_hint import PrecisionHintExtractor, default_hint_extractor
from services.query_normalizer import normalize_query
from services.resolvers import (
    GenericFallbackResolver,
    LocalMatchResolver,
    ResolutionRequest,
    Resolver,
    StructuredKnowledgeResolver,
)
from services.structured_knowledge import StructuredKnowledgeClient, get_default_structured_client
from settings import settings

logger = logging.getLogger(__name__)


class ResolutionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass
class TierAttempt:
    resolver: str
    tier: str
    result: str  # "found" | "empty" | "soft_failure" | "rate_limited"
    detail: str = ""


@dataclass
class ResolutionOutcome:
    query: Optional[str]
    state: ResolutionState = ResolutionState.IDLE
    candidate: Optional[Candidate] = None
    attempts: List[TierAttempt] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.state is ResolutionState.FOUND

    @property
    def rate_limited(self) -> bool:
        return any(a.result == "rate_limited" for a in self.attempts)


def not_found_notice(query: str) -> str:
    return f'Could not find a specific location for "{query}".'


class ResolutionOrchestrator:
    def __init__(self, resolvers: Sequence[Resolver]):
        self.resolvers = list(resolvers)

    def resolve(self, raw_query: Optional[str], saved: Sequence[Place] = ()) -> ResolutionOutcome:
        """Run the tiers for ``raw_query`` against a snapshot of the saved set."""
        query = normalize_query(raw_query)
        if query is None:
            return ResolutionOutcome(query=None)

        outcome = ResolutionOutcome(query=query.text, state=ResolutionState.SEARCHING)
        request = ResolutionRequest(query=query, saved=tuple(saved))

        for resolver in self.resolvers:
            tier = resolver.tier.value
            try:
                candidate = resolver.attempt(request)
            except RateLimited as exc:
                logger.warning("[SEARCH] %s rate limited for %r: %s", resolver.name, query.text, exc)
                outcome.attempts.append(TierAttempt(resolver.name, tier, "rate_limited", exc.message))
                outcome.notices.append(exc.message)
                continue
            except SoftFailure as exc:
                logger.warning("[SEARCH] %s soft failure for %r: %s", resolver.name, query.text, exc)
                detail = exc.message
                errors = getattr(exc, "errors", None)
                if errors:
                    detail = f"{detail} ({'; '.join(errors)})"
                outcome.attempts.append(TierAttempt(resolver.name, tier, "soft_failure", detail))
                continue
            except LookupEmpty as exc:
                logger.info("[SEARCH] %s found nothing for %r", resolver.name, query.text)
                outcome.attempts.append(TierAttempt(resolver.name, tier, "empty", exc.message))
                continue

            outcome.attempts.append(TierAttempt(resolver.name, candidate.tier.value, "found"))
            outcome.candidate = candidate
            outcome.state = ResolutionState.FOUND
            logger.info(
                "[SEARCH] %r resolved by %s (tier %s) at %.6f,%.6f",
                query.text,
                resolver.name,
                candidate.tier.value,
                candidate.coordinate.lat,
                candidate.coordinate.lng,
            )
            return outcome

        outcome.state = ResolutionState.NOT_FOUND
        outcome.notices.append(not_found_notice(query.text))
        return outcome


def build_text_resolvers(
    structured: Optional[StructuredKnowledgeClient] = None,
    directory: Optional[DirectoryClient] = None,
    extractor: Optional[PrecisionHintExtractor] = None,
    region: Optional[str] = None,
) -> List[Resolver]:
    directory = directory or get_default_directory_client()
    region = region or settings.REGION_NAME
    return [
        LocalMatchResolver(),
        StructuredKnowledgeResolver(
            structured or get_default_structured_client(),
            directory,
            extractor or default_hint_extractor(),
            region,
        ),
        GenericFallbackResolver(directory, region),
    ]


_default_orchestrator: Optional[ResolutionOrchestrator] = None


def get_default_orchestrator() -> ResolutionOrchestrator:
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = ResolutionOrchestrator(build_text_resolvers())
    return _default_orchestrator
