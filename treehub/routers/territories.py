"""Territory endpoints: listing, creation, protection, and assignment."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from treehub.models.database import get_db
from treehub.models.schemas import (
    AssignTerritoryRequest, ProtectTerritoryRequest, TerritoryAssignmentOut,
    TerritoryCreate, TerritoryOut,
)
from treehub.services import territories

router = APIRouter(prefix="/territories", tags=["territories"])


@router.get("", response_model=list[TerritoryOut])
async def list_territories(
    county: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    status: Optional[str] = Query(None, enum=["AVAILABLE", "PROTECTED"]),
    db: AsyncSession = Depends(get_db),
):
    return await territories.list_territories(db, county=county, state=state, status=status)


@router.post("", response_model=TerritoryOut, status_code=201)
async def create_territory(req: TerritoryCreate, db: AsyncSession = Depends(get_db)):
    return await territories.create_territory(db, **req.model_dump())


@router.get("/home-county")
async def home_county(db: AsyncSession = Depends(get_db)):
    data = await territories.home_county_territories(db)
    return {
        "territories": [TerritoryOut.model_validate(t) for t in data["territories"]],
        "metrics": data["metrics"],
    }


@router.get("/analytics")
async def analytics(
    territory_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await territories.get_territory_analytics(db, territory_id)


@router.post("/protect", response_model=TerritoryOut)
async def protect(req: ProtectTerritoryRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await territories.protect_territory(
            db, req.territory_id, req.professional_id, req.exclusivity_fee,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/assign", response_model=TerritoryAssignmentOut, status_code=201)
async def assign(req: AssignTerritoryRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await territories.assign_professional(
            db, req.territory_id, req.professional_id, req.assignment_type, req.priority,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{territory_id}/metrics")
async def refresh_metrics(territory_id: int, db: AsyncSession = Depends(get_db)):
    metrics = await territories.update_territory_metrics(db, territory_id)
    if metrics is None:
        raise HTTPException(status_code=404, detail="Territory not found")
    return metrics
