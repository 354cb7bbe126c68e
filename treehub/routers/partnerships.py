"""Partnership endpoints: CRUD-lite, activity logging, and insurance referrals."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Partnership, get_db
from treehub.models.schemas import (
    ActivityCreate, InsuranceReferralRequest, LeadOut, PartnershipCreate, PartnershipOut,
)
from treehub.services import partnerships

router = APIRouter(prefix="/partnerships", tags=["partnerships"])


@router.get("", response_model=list[PartnershipOut])
async def list_partnerships(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Partnership).order_by(Partnership.relationship_score.desc()))
    return result.scalars().all()


@router.post("", response_model=PartnershipOut, status_code=201)
async def create_partnership(req: PartnershipCreate, db: AsyncSession = Depends(get_db)):
    return await partnerships.create_partnership(db, **req.model_dump())


@router.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)):
    return await partnerships.partnership_dashboard(db)


@router.post("/initialize")
async def initialize(db: AsyncSession = Depends(get_db)):
    """Seed the home-market insurance and municipal prospects."""
    return await partnerships.initialize_target_partnerships(db)


@router.post("/{partnership_id}/activities", response_model=PartnershipOut)
async def add_activity(partnership_id: int, req: ActivityCreate, db: AsyncSession = Depends(get_db)):
    if not await db.get(Partnership, partnership_id):
        raise HTTPException(status_code=404, detail="Partnership not found")
    await partnerships.record_activity(db, partnership_id, **req.model_dump())
    return await db.get(Partnership, partnership_id)


@router.post("/insurance-referral")
async def insurance_referral(req: InsuranceReferralRequest, db: AsyncSession = Depends(get_db)):
    try:
        lead, partnership = await partnerships.process_insurance_referral(
            db, req.insurance_company, req.claim_number, req.customer.model_dump(), req.estimated_cost,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.flush()
    return {
        "lead": LeadOut.model_validate(lead),
        "partnership": PartnershipOut.model_validate(partnership),
    }
