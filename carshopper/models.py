# carshopper/models.py
"""SQLAlchemy ORM models for the vehicle catalog and per-user state.

`Vehicle` rows are written by the ingestion upsert and the embedding batch job;
the retrieval core only reads them. Interests, hidden vehicles and favorites
belong to a user identified by the external auth provider's id.
"""
from sqlalchemy import (
    Column, Integer, Text, Numeric, Boolean, TIMESTAMP, ForeignKey, JSON,
    UniqueConstraint, func, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from pgvector.sqlalchemy import Vector
from .db import Base
from .embeddings import EMBEDDING_DIM

class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text)
    price = Column(Numeric(asdecimal=False))
    mileage = Column(Text)
    location = Column(Text)
    image_url = Column(Text)
    marketplace_url = Column(Text, nullable=False, unique=True, index=True)
    source = Column(Text)
    make = Column(Text)
    model = Column(Text)
    body_type = Column(Text)
    year = Column(Integer)
    posted_date = Column(TIMESTAMP(timezone=True))
    embedding = Column(Vector(EMBEDDING_DIM), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

class Interest(Base):
    __tablename__ = "user_interests"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    criteria = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

class HiddenVehicle(Base):
    __tablename__ = "user_hidden_vehicles"
    __table_args__ = (UniqueConstraint("user_id", "vehicle_id", name="uq_hidden_user_vehicle"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    reason = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "vehicle_id", name="uq_favorite_user_vehicle"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

Index("idx_vehicles_price", Vehicle.price)
Index("idx_vehicles_year", Vehicle.year)
Index("idx_vehicles_posted_date", Vehicle.posted_date)
