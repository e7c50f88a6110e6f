# carshopper/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Dict, List
from .. import schemas
from ..errors import CatalogUnavailable, RetrievalFailed, VehicleNotFound
from ..services import CarShopperService
from ..utils import logger

router = APIRouter()

def get_service(request: Request) -> CarShopperService:
    return request.app.state.service

@router.get("/health")
def health():
    return {"status": "ok"}

@router.post("/search", response_model=schemas.SearchResponse)
async def search(payload: schemas.SearchRequest, service: CarShopperService = Depends(get_service)):
    try:
        vehicles = await service.search(query=payload.query, filters=payload.filters,
                                        user_id=payload.user_id, limit=payload.limit)
    except RetrievalFailed as e:
        raise HTTPException(status_code=500, detail="Search failed") from e
    return {"count": len(vehicles), "data": vehicles}

@router.get("/scoreboard/{user_id}", response_model=Dict[str, List[schemas.VehicleOut]])
async def scoreboard(user_id: str, service: CarShopperService = Depends(get_service)):
    if not user_id.strip():
        raise HTTPException(status_code=400, detail="User ID is required")
    try:
        return await service.scoreboard(user_id)
    except RetrievalFailed as e:
        raise HTTPException(status_code=500, detail="Scoreboard unavailable") from e

@router.post("/favorites/toggle", response_model=schemas.FavoriteState)
async def toggle_favorite(payload: schemas.FavoriteToggle, service: CarShopperService = Depends(get_service)):
    try:
        state = await service.toggle_favorite(payload.user_id, payload.vehicle_id)
    except VehicleNotFound:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    except CatalogUnavailable as e:
        raise HTTPException(status_code=500, detail="Failed to update favorite status") from e
    return {"vehicle_id": payload.vehicle_id, "is_favorite": state}

@router.get("/users/{user_id}/favorites", response_model=List[schemas.VehicleOut])
async def list_favorites(user_id: str, service: CarShopperService = Depends(get_service)):
    try:
        return await service.list_favorites(user_id)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=500, detail="Failed to load favorites") from e

@router.post("/hidden")
async def hide_vehicle(payload: schemas.HideRequest, service: CarShopperService = Depends(get_service)):
    try:
        await service.hide_vehicle(payload.user_id, payload.vehicle_id, payload.reason)
    except VehicleNotFound:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    except CatalogUnavailable as e:
        logger.error("Hide failed for user %s vehicle %s", payload.user_id, payload.vehicle_id)
        raise HTTPException(status_code=500, detail="Failed to hide vehicle") from e
    return {"status": "hidden"}

@router.post("/users/{user_id}/interests", response_model=schemas.InterestOut, status_code=201)
async def create_interest(user_id: str, payload: schemas.InterestCreate,
                          service: CarShopperService = Depends(get_service)):
    try:
        return await service.create_interest(user_id, payload)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=500, detail="Failed to save interest") from e

@router.get("/users/{user_id}/interests", response_model=List[schemas.InterestOut])
async def list_interests(user_id: str, service: CarShopperService = Depends(get_service)):
    try:
        return await service.list_interests(user_id)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=500, detail="Failed to load interests") from e

@router.delete("/users/{user_id}/interests/{interest_id}")
async def delete_interest(user_id: str, interest_id: int, service: CarShopperService = Depends(get_service)):
    try:
        ok = await service.delete_interest(user_id, interest_id)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=500, detail="Failed to delete interest") from e
    if not ok:
        raise HTTPException(status_code=404, detail="Interest not found")
    return {"status": "deleted"}
