# carshopper/router.py
"""Search routing between the semantic and structured retrieval paths.

A request with free text goes to the semantic path first: embed the text,
then rank by vector similarity. If either step is unavailable or times out
the outcome is FALLBACK and the router runs the structured path exactly once,
using the same text as a substring filter together with any structured
filters. A request without text goes straight to the structured path. A
structured failure or timeout is FATAL. There are no retries beyond that
single fallback.

Semantic results are returned as ranked by the matcher; structured filters are
not applied to them.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional

from .criteria import FilterSet, normalize_criteria
from .crud import DEFAULT_LIMIT
from .errors import CatalogUnavailable, EmbeddingUnavailable, MatcherUnavailable, RetrievalFailed
from .schemas import VehicleOut
from .utils import logger, with_timeout


class RouteStatus(Enum):
    OK = "ok"
    FALLBACK = "fallback"
    FATAL = "fatal"


class SearchPath(Enum):
    SEMANTIC = "semantic"
    STRUCTURED = "structured"


@dataclass
class RouteOutcome:
    status: RouteStatus
    path: SearchPath
    vehicles: List[VehicleOut] = field(default_factory=list)
    reason: Optional[str] = None
    fell_back: bool = False

    @property
    def ok(self) -> bool:
        return self.status is RouteStatus.OK


class SearchRouter:
    def __init__(self, embedder, matcher, executor, threshold: Optional[float] = None,
                 timeout: Optional[float] = None):
        self.embedder = embedder
        self.matcher = matcher
        self.executor = executor
        self.threshold = threshold
        # None falls back to SEARCH_TIMEOUT_SECONDS inside with_timeout
        self.timeout = timeout

    async def _semantic(self, query: str, exclude_ids, limit: int) -> RouteOutcome:
        try:
            vector = await with_timeout(self.embedder.embed(query), "query embedding", self.timeout)
        except asyncio.TimeoutError:
            return RouteOutcome(RouteStatus.FALLBACK, SearchPath.SEMANTIC, reason="embedding: timed out")
        except EmbeddingUnavailable as e:
            return RouteOutcome(RouteStatus.FALLBACK, SearchPath.SEMANTIC, reason=f"embedding: {e}")
        try:
            vehicles = await with_timeout(
                self.matcher.match(vector, threshold=self.threshold, limit=limit, exclude_ids=exclude_ids),
                "vector match", self.timeout,
            )
        except asyncio.TimeoutError:
            return RouteOutcome(RouteStatus.FALLBACK, SearchPath.SEMANTIC, reason="matcher: timed out")
        except MatcherUnavailable as e:
            return RouteOutcome(RouteStatus.FALLBACK, SearchPath.SEMANTIC, reason=f"matcher: {e}")
        return RouteOutcome(RouteStatus.OK, SearchPath.SEMANTIC, vehicles=vehicles)

    async def _structured(self, filters: FilterSet, exclude_ids, text_query: Optional[str],
                          limit: int) -> RouteOutcome:
        try:
            vehicles = await with_timeout(
                self.executor.run(filters, exclude_ids=exclude_ids, text_query=text_query, limit=limit),
                "structured search", self.timeout,
            )
        except asyncio.TimeoutError:
            return RouteOutcome(RouteStatus.FATAL, SearchPath.STRUCTURED, reason="catalog: timed out")
        except CatalogUnavailable as e:
            return RouteOutcome(RouteStatus.FATAL, SearchPath.STRUCTURED, reason=str(e))
        return RouteOutcome(RouteStatus.OK, SearchPath.STRUCTURED, vehicles=vehicles)

    async def route(self, query: Optional[str] = None, filters: Any = None,
                    exclude_ids: Iterable[int] = (), limit: Optional[int] = None) -> RouteOutcome:
        fs = filters if isinstance(filters, FilterSet) else normalize_criteria(filters)
        exclude = frozenset(exclude_ids or ())
        limit = limit or DEFAULT_LIMIT
        text = query.strip() if isinstance(query, str) else ""

        if not text:
            return await self._structured(fs, exclude, None, limit)

        semantic = await self._semantic(text, exclude, limit)
        if semantic.ok:
            return semantic
        logger.warning("Semantic search for %r unavailable (%s); using structured search",
                       text, semantic.reason)
        outcome = await self._structured(fs, exclude, text, limit)
        outcome.fell_back = True
        # a FATAL fallback keeps its own reason; otherwise report why semantic was skipped
        outcome.reason = outcome.reason or semantic.reason
        return outcome

    async def search(self, query: Optional[str] = None, filters: Any = None,
                     exclude_ids: Iterable[int] = (), limit: Optional[int] = None) -> List[VehicleOut]:
        outcome = await self.route(query=query, filters=filters, exclude_ids=exclude_ids, limit=limit)
        if outcome.status is RouteStatus.FATAL:
            logger.error("Search failed on %s path: %s", outcome.path.value, outcome.reason)
            raise RetrievalFailed()
        return outcome.vehicles
