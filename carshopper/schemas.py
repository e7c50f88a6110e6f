# carshopper/schemas.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

class VehicleBase(BaseModel):
    title: Optional[str] = None
    price: Optional[float] = None
    mileage: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    marketplace_url: str
    source: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    body_type: Optional[str] = None
    year: Optional[int] = None
    posted_date: Optional[datetime] = None

    model_config = ConfigDict(protected_namespaces=())

    @field_validator("mileage", mode="before")
    @classmethod
    def _mileage_as_text(cls, v):
        # scrapers report mileage either as a display string or a bare number
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

class VehicleCreate(VehicleBase):
    pass

class VehicleOut(VehicleBase):
    id: int
    similarity: Optional[float] = None
    is_favorite: bool = False

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

class Criteria(BaseModel):
    """Saved interest criteria. Both historical key spellings are accepted and kept.

    Values are loosely typed: older clients saved odd shapes, and the
    normalizer drops anything it can't use.
    """
    make: Optional[Any] = None
    model: Optional[Any] = None
    min_price: Optional[Any] = None
    max_price: Optional[Any] = None
    maxPrice: Optional[Any] = None
    min_year: Optional[Any] = None
    minYear: Optional[Any] = None
    body_types: Optional[Any] = None
    bodyType: Optional[Any] = None
    non_negotiables: Optional[Any] = None

    model_config = ConfigDict(extra="allow", protected_namespaces=())

class InterestCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    criteria: Criteria = Field(default_factory=Criteria)
    is_active: bool = True

class InterestOut(BaseModel):
    id: int
    user_id: str
    name: str
    is_active: bool
    criteria: Dict[str, Any]
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class SearchRequest(BaseModel):
    query: Optional[str] = None
    filters: Optional[Criteria] = None
    user_id: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=100)

class SearchResponse(BaseModel):
    count: int
    data: List[VehicleOut]

class FavoriteToggle(BaseModel):
    user_id: str
    vehicle_id: int

class FavoriteState(BaseModel):
    vehicle_id: int
    is_favorite: bool

class HideRequest(BaseModel):
    user_id: str
    vehicle_id: int
    reason: Optional[str] = None

class BatchResult(BaseModel):
    embedded: int = 0
    failed: int = 0
