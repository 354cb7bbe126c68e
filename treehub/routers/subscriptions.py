"""Subscription endpoints: plans, create-or-upgrade, billing, limits, and cancellation."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Professional, get_db
from treehub.models.schemas import SubscriptionCreate, SubscriptionOut
from treehub.services import subscriptions

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/plans")
async def plans():
    return subscriptions.SUBSCRIPTION_PLANS


@router.get("/analytics")
async def analytics(db: AsyncSession = Depends(get_db)):
    return await subscriptions.get_subscription_analytics(db)


@router.post("", response_model=SubscriptionOut)
async def create_subscription(req: SubscriptionCreate, db: AsyncSession = Depends(get_db)):
    """Start a trial, or upgrade an existing subscription to the requested plan."""
    if not await db.get(Professional, req.professional_id):
        raise HTTPException(status_code=404, detail="Professional not found")
    try:
        return await subscriptions.create_subscription(db, req.professional_id, req.tier, req.is_annual)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{professional_id}", response_model=SubscriptionOut)
async def get_subscription(professional_id: int, db: AsyncSession = Depends(get_db)):
    subscription = await subscriptions.get_subscription(db, professional_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.post("/{professional_id}/payment")
async def payment(professional_id: int, db: AsyncSession = Depends(get_db)):
    data = await subscriptions.process_payment(db, professional_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return data


@router.get("/{professional_id}/limits/{limit_type}")
async def check_limit(
    professional_id: int,
    limit_type: str = Path(..., pattern="^(leads|job_matches|weather_api_calls)$"),
    db: AsyncSession = Depends(get_db),
):
    allowed = await subscriptions.check_limit(db, professional_id, limit_type)
    return {"limit_type": limit_type, "allowed": allowed}


@router.delete("/{professional_id}", response_model=SubscriptionOut)
async def cancel(professional_id: int, db: AsyncSession = Depends(get_db)):
    subscription = await subscriptions.cancel_subscription(db, professional_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription
