# carshopper/exclusions.py
import asyncio
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from sqlalchemy.exc import SQLAlchemyError
from . import crud
from .errors import CatalogUnavailable


@dataclass(frozen=True)
class Exclusions:
    hidden: FrozenSet[int] = field(default_factory=frozenset)
    favorites: FrozenSet[int] = field(default_factory=frozenset)


class ExclusionResolver:
    """Loads a user's hidden and favorited vehicle ids, both reads in parallel."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _read(self, fn, user_id: str) -> FrozenSet[int]:
        with self.session_factory() as db:
            try:
                return frozenset(fn(db, user_id))
            except SQLAlchemyError as e:
                raise CatalogUnavailable(str(e)) from e

    async def resolve(self, user_id: Optional[str]) -> Exclusions:
        # anonymous callers have nothing hidden or favorited
        if not user_id or not user_id.strip():
            return Exclusions()
        hidden, favorites = await asyncio.gather(
            asyncio.to_thread(self._read, crud.hidden_vehicle_ids, user_id),
            asyncio.to_thread(self._read, crud.favorite_vehicle_ids, user_id),
        )
        return Exclusions(hidden=hidden, favorites=favorites)
