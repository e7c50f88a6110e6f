# carshopper/scoreboard.py
"""Per-user scoreboard: one ranked vehicle list per active interest profile.

The interest list and the exclusion sets load concurrently and both must
finish before any profile is searched. Profiles are then searched
concurrently, always on the structured path, with the user's hidden vehicles
excluded. A profile whose search fails or times out shows an empty list; the
rest of the scoreboard is unaffected.

Interest names are expected to be unique per user. When they are not, the
later-created profile's results replace the earlier one's under that name.
"""
import asyncio
from typing import Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from . import crud
from .errors import CatalogUnavailable, RetrievalFailed
from .exclusions import ExclusionResolver, Exclusions
from .router import RouteStatus, SearchRouter
from .schemas import VehicleOut
from .utils import logger, with_timeout

PROFILE_LIMIT = 20


class ScoreboardAggregator:
    def __init__(self, session_factory, router: SearchRouter, resolver: ExclusionResolver,
                 timeout: Optional[float] = None, limit: int = PROFILE_LIMIT):
        self.session_factory = session_factory
        self.router = router
        self.resolver = resolver
        self.timeout = timeout
        self.limit = limit

    def _active_interests(self, user_id: str):
        with self.session_factory() as db:
            try:
                return [(i.name, dict(i.criteria or {})) for i in crud.list_interests(db, user_id, active_only=True)]
            except SQLAlchemyError as e:
                raise CatalogUnavailable(str(e)) from e

    async def _profile(self, name: str, criteria: dict, exclusions: Exclusions) -> List[VehicleOut]:
        try:
            outcome = await with_timeout(
                self.router.route(filters=criteria, exclude_ids=exclusions.hidden, limit=self.limit),
                f"scoreboard profile {name!r}", self.timeout,
            )
        except asyncio.TimeoutError:
            return []
        except Exception:
            logger.exception("Scoreboard profile %r failed", name)
            return []
        if outcome.status is not RouteStatus.OK:
            logger.warning("Scoreboard profile %r failed: %s", name, outcome.reason)
            return []
        return [
            v.model_copy(update={"is_favorite": v.id in exclusions.favorites})
            for v in outcome.vehicles
        ]

    async def build(self, user_id: str) -> Dict[str, List[VehicleOut]]:
        try:
            interests, exclusions = await asyncio.gather(
                with_timeout(asyncio.to_thread(self._active_interests, user_id),
                             "interest fetch", self.timeout),
                with_timeout(self.resolver.resolve(user_id), "exclusion fetch", self.timeout),
            )
        except (asyncio.TimeoutError, CatalogUnavailable) as e:
            logger.error("Scoreboard for user %s could not load profiles: %r", user_id, e)
            raise RetrievalFailed() from e

        results = await asyncio.gather(*(
            self._profile(name, criteria, exclusions) for name, criteria in interests
        ))
        board: Dict[str, List[VehicleOut]] = {}
        for (name, _), vehicles in zip(interests, results):
            board[name] = vehicles
        return board
