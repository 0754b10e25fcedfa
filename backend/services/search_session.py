"""
Per-user search state: the temporary search result slot, the suggested set,
and single-flight autocomplete.

Every resolution cycle takes a generation token before it starts; its outcome
is applied only if no newer cycle has started since. Late arrivals from an
older query are dropped instead of overwriting a newer result.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from typing import List, Optional

from domain.models import Candidate, Place
from services.places_types import DirectoryHit
from services.resolvers import SuggestionResolver

logger = logging.getLogger(__name__)


class SearchSession:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._search_generation = 0
        self._area_generation = 0
        self._current_result: Optional[Candidate] = None
        self._suggested: List[Candidate] = []

    # -- temporary search result ------------------------------------------------

    @property
    def current_result(self) -> Optional[Candidate]:
        with self._lock:
            return self._current_result

    def begin_search(self) -> int:
        with self._lock:
            self._search_generation += 1
            return self._search_generation

    def apply_search(self, token: int, candidate: Optional[Candidate]) -> bool:
        """
        Replace the slot with ``candidate`` if ``token`` is still the latest.

        Saved-set matches do not occupy the slot: the saved place itself is the
        result, so the slot is cleared.
        """
        with self._lock:
            if token != self._search_generation:
                logger.info("[SEARCH] discarding stale result for generation %d (latest %d)", token, self._search_generation)
                return False
            if candidate is not None and candidate.saved_place_id is not None:
                candidate = None
            self._current_result = candidate
            return True

    def clear_result(self) -> None:
        with self._lock:
            self._current_result = None

    def on_place_saved(self, place: Place) -> None:
        """A place joined the saved set: drop the temp slot and same-named suggestions."""
        with self._lock:
            self._current_result = None
            self._suggested = [c for c in self._suggested if c.name != place.name]

    # -- suggested set --------------------------------------------------------------

    @property
    def suggested(self) -> List[Candidate]:
        with self._lock:
            return list(self._suggested)

    def begin_area(self) -> int:
        with self._lock:
            self._area_generation += 1
            return self._area_generation

    def apply_area(self, token: int, candidates: List[Candidate]) -> bool:
        """Replace the suggested set wholesale; never merged with the previous one."""
        with self._lock:
            if token != self._area_generation:
                logger.info("[AREA] discarding stale suggestions for generation %d", token)
                return False
            self._suggested = list(candidates)
            return True

    def dismiss_suggested(self, candidate_id: str) -> bool:
        with self._lock:
            remaining = [c for c in self._suggested if c.id != candidate_id]
            removed = len(remaining) != len(self._suggested)
            self._suggested = remaining
            return removed


class SuggestionFetcher:
    """
    Debounced autocomplete for one input session.

    A new call cancels whatever fetch is still pending or in flight, so at most
    one result per keystroke burst reaches the caller. A superseded call
    returns None.
    """

    def __init__(self, resolver: SuggestionResolver, debounce_seconds: float, min_length: int):
        self.resolver = resolver
        self.debounce_seconds = debounce_seconds
        self.min_length = min_length
        self._inflight: Optional[asyncio.Task] = None

    async def fetch(self, text: str) -> Optional[List[DirectoryHit]]:
        previous = self._inflight
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.ensure_future(self._run(text))
        self._inflight = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight is task and task.done():
                self._inflight = None

        if task.cancelled():
            return None
        return task.result()

    async def _run(self, text: str) -> List[DirectoryHit]:
        query = (text or "").strip()
        if len(query) < self.min_length:
            return []
        await asyncio.sleep(self.debounce_seconds)
        return await asyncio.to_thread(self.resolver.suggest, query)


class SuggestionFetchers:
    """
    One SuggestionFetcher per input session key.

    Keys come from clients, so only the most recently used ``max_sessions``
    fetchers are kept. An evicted fetcher still finishes a fetch already in
    progress for its caller.
    """

    def __init__(
        self,
        resolver: SuggestionResolver,
        debounce_seconds: float,
        min_length: int,
        max_sessions: int = 1000,
    ):
        self.resolver = resolver
        self.debounce_seconds = debounce_seconds
        self.min_length = min_length
        self.max_sessions = max(1, max_sessions)
        self._fetchers: "OrderedDict[str, SuggestionFetcher]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._fetchers)

    def get(self, key: str) -> SuggestionFetcher:
        with self._lock:
            fetcher = self._fetchers.get(key)
            if fetcher is not None:
                self._fetchers.move_to_end(key)
                return fetcher
            fetcher = SuggestionFetcher(self.resolver, self.debounce_seconds, self.min_length)
            self._fetchers[key] = fetcher
            while len(self._fetchers) > self.max_sessions:
                evicted, _ = self._fetchers.popitem(last=False)
                logger.debug("[SUGGEST] evicted fetcher for session %r", evicted)
            return fetcher


_default_search_session: Optional[SearchSession] = None


def get_default_search_session() -> SearchSession:
    global _default_search_session
    if _default_search_session is None:
        _default_search_session = SearchSession()
    return _default_search_session
