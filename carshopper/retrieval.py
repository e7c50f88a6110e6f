# carshopper/retrieval.py
"""The two catalog retrieval paths.

`VectorMatcher` ranks embedded vehicles by cosine similarity to a query
vector; `StructuredFilterExecutor` runs exact/range/substring predicates.
Both open a fresh session per call in a worker thread and return detached
`VehicleOut` objects.
"""
import os
import asyncio
from typing import Iterable, List, Optional
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from . import crud
from .criteria import FilterSet
from .errors import CatalogUnavailable, MatcherUnavailable
from .schemas import VehicleOut
from .utils import logger

load_dotenv()

# Low on purpose: stricter thresholds returned empty result sets for ordinary
# queries. Callers can pass their own per request.
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.1"))


class VectorMatcher:
    def __init__(self, session_factory, threshold: float = SIMILARITY_THRESHOLD):
        self.session_factory = session_factory
        self.threshold = threshold

    def _match(self, vector, threshold, limit, exclude_ids) -> List[VehicleOut]:
        with self.session_factory() as db:
            dialect = db.get_bind().dialect.name
            if dialect != "postgresql":
                raise MatcherUnavailable(f"vector similarity not supported on {dialect}")
            try:
                rows = crud.match_vehicles(db, vector, threshold, limit=limit, exclude_ids=exclude_ids)
            except SQLAlchemyError as e:
                raise MatcherUnavailable(str(e)) from e
            return [
                VehicleOut.model_validate(vehicle).model_copy(update={"similarity": score})
                for vehicle, score in rows
            ]

    async def match(self, vector: List[float], threshold: Optional[float] = None,
                    limit: int = crud.DEFAULT_LIMIT, exclude_ids: Iterable[int] = ()) -> List[VehicleOut]:
        """Vehicles ordered by similarity desc, then newest posting. Empty list means no match."""
        threshold = self.threshold if threshold is None else threshold
        exclude = frozenset(exclude_ids or ())
        results = await asyncio.to_thread(self._match, vector, threshold, limit, exclude)
        # excluded ids never leave the matcher
        return [v for v in results if v.id not in exclude]


class StructuredFilterExecutor:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _run(self, filters, exclude_ids, text_query, limit) -> List[VehicleOut]:
        with self.session_factory() as db:
            try:
                rows = crud.filter_vehicles(db, filters, exclude_ids=exclude_ids,
                                            text_query=text_query, limit=limit)
            except SQLAlchemyError as e:
                logger.exception("Catalog query failed: %s", e)
                raise CatalogUnavailable(str(e)) from e
            return [VehicleOut.model_validate(v) for v in rows]

    async def run(self, filters: Optional[FilterSet] = None, exclude_ids: Iterable[int] = (),
                  text_query: Optional[str] = None, limit: Optional[int] = None) -> List[VehicleOut]:
        filters = filters or FilterSet()
        limit = limit or crud.DEFAULT_LIMIT
        return await asyncio.to_thread(self._run, filters, frozenset(exclude_ids or ()), text_query, limit)
