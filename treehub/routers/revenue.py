"""Revenue endpoints: analytics, projections, agent ROI, and commission tracking."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import get_db
from treehub.models.schemas import (
    EquipmentCommissionRequest, JobCommissionRequest, LeadConversionRequest,
)
from treehub.services import revenue

router = APIRouter(prefix="/revenue", tags=["revenue"])


@router.get("/analytics")
async def analytics(
    period: str = Query("monthly", enum=["daily", "weekly", "monthly", "yearly"]),
    db: AsyncSession = Depends(get_db),
):
    return await revenue.revenue_analytics(db, period)


@router.get("/projections")
async def projections(db: AsyncSession = Depends(get_db)):
    return await revenue.revenue_projections(db)


@router.get("/ai-roi")
async def ai_roi(db: AsyncSession = Depends(get_db)):
    return await revenue.ai_roi(db)


@router.post("/lead-conversion")
async def lead_conversion(req: LeadConversionRequest, db: AsyncSession = Depends(get_db)):
    data = await revenue.track_lead_conversion(db, req.lead_id, req.job_value)
    if data is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return data


@router.post("/job-commission")
async def job_commission(req: JobCommissionRequest, db: AsyncSession = Depends(get_db)):
    data = await revenue.track_job_commission(db, req.job_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return data


@router.post("/equipment-commission")
async def equipment_commission(req: EquipmentCommissionRequest, db: AsyncSession = Depends(get_db)):
    data = await revenue.track_equipment_commission(db, req.transaction_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Equipment transaction not found")
    return data
