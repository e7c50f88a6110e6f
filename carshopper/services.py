# carshopper/services.py
"""Retrieval request surface used by the HTTP routes and the CLI.

`CarShopperService` wires the retrieval components from two injected
dependencies: a session factory for the catalog store and an embedding client.
"""
import asyncio
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from . import crud, schemas
from .errors import CatalogUnavailable, RetrievalFailed, VehicleNotFound
from .exclusions import ExclusionResolver
from .retrieval import StructuredFilterExecutor, VectorMatcher
from .router import SearchRouter
from .scoreboard import ScoreboardAggregator
from .utils import logger, with_timeout


def ingest_vehicle(db, payload: Dict[str, Any]) -> int:
    """Upsert one scraped listing keyed on its marketplace URL."""
    data = schemas.VehicleCreate.model_validate(payload).model_dump()
    vehicle_id = crud.upsert_vehicle(db, data)
    logger.info("Ingested vehicle %s (%s)", vehicle_id, data["marketplace_url"])
    return vehicle_id


class CarShopperService:
    def __init__(self, session_factory, embedder, threshold: Optional[float] = None,
                 timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.matcher = VectorMatcher(session_factory)
        self.executor = StructuredFilterExecutor(session_factory)
        self.timeout = timeout
        self.router = SearchRouter(embedder, self.matcher, self.executor, threshold=threshold, timeout=timeout)
        self.exclusions = ExclusionResolver(session_factory)
        self.scoreboards = ScoreboardAggregator(session_factory, self.router, self.exclusions, timeout=timeout)

    def _in_session(self, fn, *args):
        with self.session_factory() as db:
            try:
                return fn(db, *args)
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception("Catalog operation failed: %s", e)
                raise CatalogUnavailable(str(e)) from e

    def _require_vehicle(self, db, vehicle_id: int):
        if crud.get_vehicle(db, vehicle_id) is None:
            raise VehicleNotFound(vehicle_id)

    async def search(self, query: Optional[str] = None, filters: Any = None,
                     user_id: Optional[str] = None, limit: Optional[int] = None) -> List[schemas.VehicleOut]:
        try:
            exclusions = await with_timeout(self.exclusions.resolve(user_id), "exclusion fetch", self.timeout)
        except (asyncio.TimeoutError, CatalogUnavailable) as e:
            raise RetrievalFailed() from e
        vehicles = await self.router.search(query=query, filters=filters,
                                            exclude_ids=exclusions.hidden, limit=limit)
        return [v.model_copy(update={"is_favorite": v.id in exclusions.favorites}) for v in vehicles]

    async def scoreboard(self, user_id: str) -> Dict[str, List[schemas.VehicleOut]]:
        return await self.scoreboards.build(user_id)

    async def toggle_favorite(self, user_id: str, vehicle_id: int) -> bool:
        def _toggle(db, user_id, vehicle_id):
            self._require_vehicle(db, vehicle_id)
            return crud.toggle_favorite(db, user_id, vehicle_id)
        state = await asyncio.to_thread(self._in_session, _toggle, user_id, vehicle_id)
        logger.info("User %s favorite %s -> %s", user_id, vehicle_id, state)
        return state

    async def hide_vehicle(self, user_id: str, vehicle_id: int, reason: Optional[str] = None) -> None:
        def _hide(db, user_id, vehicle_id, reason):
            self._require_vehicle(db, vehicle_id)
            return crud.hide_vehicle(db, user_id, vehicle_id, reason)
        added = await asyncio.to_thread(self._in_session, _hide, user_id, vehicle_id, reason)
        if added:
            logger.info("User %s hid vehicle %s", user_id, vehicle_id)

    async def list_favorites(self, user_id: str) -> List[schemas.VehicleOut]:
        def _favorites(db, user_id):
            return [schemas.VehicleOut.model_validate(v).model_copy(update={"is_favorite": True})
                    for v in crud.list_favorites(db, user_id)]
        return await asyncio.to_thread(self._in_session, _favorites, user_id)

    async def create_interest(self, user_id: str, payload: schemas.InterestCreate) -> schemas.InterestOut:
        criteria = payload.criteria.model_dump(exclude_none=True)
        def _create(db, user_id):
            obj = crud.create_interest(db, user_id, payload.name, criteria, payload.is_active)
            return schemas.InterestOut.model_validate(obj)
        return await asyncio.to_thread(self._in_session, _create, user_id)

    async def list_interests(self, user_id: str) -> List[schemas.InterestOut]:
        def _list(db, user_id):
            return [schemas.InterestOut.model_validate(i) for i in crud.list_interests(db, user_id)]
        return await asyncio.to_thread(self._in_session, _list, user_id)

    async def delete_interest(self, user_id: str, interest_id: int) -> bool:
        return await asyncio.to_thread(self._in_session, crud.delete_interest, user_id, interest_id)
