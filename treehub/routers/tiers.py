"""Tier endpoints: status, metrics refresh, promotion, and analytics."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Professional, get_db
from treehub.models.schemas import ProfessionalRequest, TierStatusOut
from treehub.services import tiers

router = APIRouter(prefix="/tiers", tags=["tiers"])


@router.get("/analytics")
async def tier_analytics(db: AsyncSession = Depends(get_db)):
    return await tiers.get_tier_analytics(db)


@router.post("/initialize", response_model=TierStatusOut)
async def initialize_tier(req: ProfessionalRequest, db: AsyncSession = Depends(get_db)):
    if not await db.get(Professional, req.professional_id):
        raise HTTPException(status_code=404, detail="Professional not found")
    return await tiers.initialize_tier(db, req.professional_id)


@router.post("/update-metrics")
async def update_metrics(req: ProfessionalRequest, db: AsyncSession = Depends(get_db)):
    """Recompute this month's metrics and re-check promotion eligibility."""
    metrics = await tiers.update_performance_metrics(db, req.professional_id)
    if metrics is None:
        raise HTTPException(status_code=404, detail="Tier status not found")
    advancement = await tiers.check_tier_advancement(db, req.professional_id)
    return {"metrics": metrics, "advancement": advancement}


@router.post("/promote", response_model=TierStatusOut)
async def promote(req: ProfessionalRequest, db: AsyncSession = Depends(get_db)):
    try:
        status = await tiers.promote_professional(db, req.professional_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if status is None:
        raise HTTPException(status_code=404, detail="Tier status not found")
    return status


@router.post("/review")
async def run_review(db: AsyncSession = Depends(get_db)):
    """Run the monthly tier review immediately."""
    return await tiers.monthly_tier_review(db)


@router.get("/{professional_id}", response_model=TierStatusOut)
async def get_tier(professional_id: int, db: AsyncSession = Depends(get_db)):
    status = await tiers.get_tier_status(db, professional_id)
    if not status:
        raise HTTPException(status_code=404, detail="Tier status not found")
    return status


@router.get("/{professional_id}/dashboard")
async def dashboard(professional_id: int, db: AsyncSession = Depends(get_db)):
    data = await tiers.tier_dashboard(db, professional_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Tier status not found")
    return data
