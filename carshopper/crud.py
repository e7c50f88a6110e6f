# carshopper/crud.py
"""Catalog and per-user queries.

Plain synchronous functions taking a `Session`; the async components run them
in worker threads, one session per call. Query errors propagate as SQLAlchemy
exceptions and are classified by the caller.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy import select, delete, update, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional, Iterable, Tuple
from .models import Vehicle, Interest, HiddenVehicle, Favorite
from .criteria import FilterSet

DEFAULT_LIMIT = 20

def _like_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

# --- vehicles ---

def upsert_vehicle(db: Session, data: Dict[str, Any]) -> int:
    table = Vehicle.__table__
    insert = pg_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert
    stmt = insert(table).values(**data)
    # copy every supplied column from EXCLUDED; the embedding stays attached
    excluded = {k: stmt.excluded[k] for k in data if k not in ("id", "created_at", "embedding")}
    excluded["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["marketplace_url"], set_=excluded)
    db.execute(stmt)
    db.commit()
    return db.scalar(select(Vehicle.id).where(Vehicle.marketplace_url == data["marketplace_url"]))

def get_vehicle(db: Session, vehicle_id: int) -> Optional[Vehicle]:
    return db.get(Vehicle, vehicle_id)

def filter_vehicles(db: Session, filters: FilterSet, exclude_ids: Iterable[int] = (),
                    text_query: Optional[str] = None, limit: int = DEFAULT_LIMIT) -> List[Vehicle]:
    conds = []
    if text_query and text_query.strip():
        pattern = f"%{_like_escape(text_query.strip())}%"
        conds.append(or_(
            Vehicle.title.ilike(pattern, escape="\\"),
            Vehicle.make.ilike(pattern, escape="\\"),
            Vehicle.model.ilike(pattern, escape="\\"),
        ))
    if filters.make:
        conds.append(Vehicle.make.ilike(_like_escape(filters.make), escape="\\"))
    if filters.model:
        conds.append(Vehicle.model.ilike(_like_escape(filters.model), escape="\\"))
    if filters.body_types:
        conds.append(Vehicle.body_type.in_(sorted(filters.body_types)))
    for body_type in filters.body_type_patterns:
        conds.append(Vehicle.body_type.ilike(_like_escape(body_type), escape="\\"))
    for max_price in filters.max_prices:
        conds.append(Vehicle.price <= max_price)
    for min_year in filters.min_years:
        conds.append(Vehicle.year >= min_year)
    exclude_ids = list(exclude_ids or ())
    if exclude_ids:
        conds.append(Vehicle.id.not_in(exclude_ids))
    q = select(Vehicle)
    if conds:
        q = q.where(and_(*conds))
    q = q.order_by(Vehicle.posted_date.desc().nulls_last(), Vehicle.id.desc()).limit(limit)
    return list(db.scalars(q))

def match_vehicles(db: Session, embedding: List[float], threshold: float,
                   limit: int = DEFAULT_LIMIT, exclude_ids: Iterable[int] = ()) -> List[Tuple[Vehicle, float]]:
    similarity = (1 - Vehicle.embedding.cosine_distance(embedding)).label("similarity")
    conds = [Vehicle.embedding.is_not(None), similarity >= threshold]
    exclude_ids = list(exclude_ids or ())
    if exclude_ids:
        conds.append(Vehicle.id.not_in(exclude_ids))
    q = (
        select(Vehicle, similarity)
        .where(and_(*conds))
        .order_by(similarity.desc(), Vehicle.posted_date.desc().nulls_last())
        .limit(limit)
    )
    return [(row[0], float(row[1])) for row in db.execute(q)]

def vehicles_missing_embedding(db: Session, limit: int) -> List[Vehicle]:
    q = select(Vehicle).where(Vehicle.embedding.is_(None)).order_by(Vehicle.id).limit(limit)
    return list(db.scalars(q))

def attach_embedding(db: Session, vehicle_id: int, embedding: List[float]) -> bool:
    # embeddings are write-once; a row embedded meanwhile is left alone
    res = db.execute(
        update(Vehicle)
        .where(Vehicle.id == vehicle_id, Vehicle.embedding.is_(None))
        .values(embedding=embedding)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount > 0

# --- interests ---

def create_interest(db: Session, user_id: str, name: str, criteria: Dict[str, Any],
                    is_active: bool = True) -> Interest:
    obj = Interest(user_id=user_id, name=name, criteria=criteria, is_active=is_active)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def list_interests(db: Session, user_id: str, active_only: bool = False) -> List[Interest]:
    q = select(Interest).where(Interest.user_id == user_id)
    if active_only:
        q = q.where(Interest.is_active.is_(True))
    return list(db.scalars(q.order_by(Interest.created_at, Interest.id)))

def delete_interest(db: Session, user_id: str, interest_id: int) -> bool:
    res = db.execute(delete(Interest).where(Interest.id == interest_id, Interest.user_id == user_id))
    db.commit()
    return res.rowcount > 0

# --- hidden vehicles and favorites ---

def hidden_vehicle_ids(db: Session, user_id: str) -> set:
    return set(db.scalars(select(HiddenVehicle.vehicle_id).where(HiddenVehicle.user_id == user_id)))

def favorite_vehicle_ids(db: Session, user_id: str) -> set:
    return set(db.scalars(select(Favorite.vehicle_id).where(Favorite.user_id == user_id)))

def hide_vehicle(db: Session, user_id: str, vehicle_id: int, reason: Optional[str] = None) -> bool:
    exists = db.scalar(select(HiddenVehicle.id).where(
        HiddenVehicle.user_id == user_id, HiddenVehicle.vehicle_id == vehicle_id))
    if exists:
        return False
    db.add(HiddenVehicle(user_id=user_id, vehicle_id=vehicle_id, reason=reason))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request hid it first
        db.rollback()
        return False
    return True

def toggle_favorite(db: Session, user_id: str, vehicle_id: int) -> bool:
    res = db.execute(delete(Favorite).where(Favorite.user_id == user_id, Favorite.vehicle_id == vehicle_id))
    if res.rowcount:
        db.commit()
        return False
    db.add(Favorite(user_id=user_id, vehicle_id=vehicle_id))
    try:
        db.commit()
    except IntegrityError:
        # lost the race to a concurrent add; the favorite exists either way
        db.rollback()
    return True

def list_favorites(db: Session, user_id: str) -> List[Vehicle]:
    q = (
        select(Vehicle)
        .join(Favorite, Favorite.vehicle_id == Vehicle.id)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
    )
    return list(db.scalars(q))
