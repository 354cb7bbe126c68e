"""Territory scoring, protection, and assignment.

A territory is a zip/city/county market unit.  Gold-tier and higher
professionals can protect an available territory for a year in exchange
for a monthly exclusivity fee.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.config import get_settings
from treehub.models.database import (
    Job, Professional, Territory, TerritoryAssignment, TierStatus,
)

logger = logging.getLogger("treehub.territories")

PROTECTION_TIERS = ("GOLD", "PLATINUM", "ELITE")
PROTECTION_DAYS = 365
FULL_PENETRATION_JOBS = 100


# ─── SCORING ─────────────────────────────────────────────────────────────────

def calculate_opportunity_score(
    territory,
    home_county: Optional[str] = None,
    home_state: Optional[str] = None,
) -> int:
    """0-100 market attractiveness.

    Income up to 30 points, household density up to 20, tree canopy up to
    25, and up to 25 for being in the home market (15 for the home state).
    """
    settings = get_settings()
    home_county = home_county or settings.home_county
    home_state = home_state or settings.home_state
    score = 0.0

    if territory.median_income:
        score += min(territory.median_income / 100000 * 30, 30)
    if territory.population and territory.households:
        score += min(territory.households / 1000 * 20, 20)
    if territory.tree_canopy:
        score += territory.tree_canopy / 100 * 25

    if territory.county == home_county and territory.state == home_state:
        score += 25
    elif territory.state == home_state:
        score += 15

    return min(round(score), 100)


def market_penetration(total_jobs: int) -> float:
    return min(total_jobs / FULL_PENETRATION_JOBS * 100, 100)


def market_value(territory) -> float:
    return (territory.median_income or 0) * (territory.households or 0)


def county_metrics(territories) -> dict:
    count = len(territories)
    return {
        "total_territories": count,
        "protected_territories": sum(1 for t in territories if t.is_protected),
        "available_territories": sum(1 for t in territories if t.status == "AVAILABLE"),
        "average_opportunity_score": sum(t.opportunity_score or 0 for t in territories) / (count or 1),
        "total_market_value": sum(market_value(t) for t in territories),
    }


def territory_analytics(territories) -> dict:
    """``territories`` must carry assignments → professional → tier_status."""
    count = len(territories)

    def covered_by(tier):
        return sum(
            1 for t in territories
            if any(
                a.professional.tier_status and a.professional.tier_status.current_tier == tier
                for a in t.assignments
            )
        )

    top = sorted(territories, key=lambda t: float(t.total_revenue or 0), reverse=True)[:10]
    return {
        "total_territories": count,
        "protected_territories": sum(1 for t in territories if t.is_protected),
        "total_revenue": sum(float(t.total_revenue or 0) for t in territories),
        "average_opportunity_score": sum(t.opportunity_score or 0 for t in territories) / count if count else 0,
        "top_performing_territories": [
            {"id": t.id, "name": t.name, "total_revenue": float(t.total_revenue or 0)} for t in top
        ],
        "tier_distribution": {tier.lower(): covered_by(tier) for tier in PROTECTION_TIERS},
    }


# ─── SERVICE ─────────────────────────────────────────────────────────────────

async def create_territory(session: AsyncSession, **data) -> Territory:
    territory = Territory(status="AVAILABLE", is_protected=False, **data)
    territory.opportunity_score = calculate_opportunity_score(territory)
    session.add(territory)
    await session.flush()
    return territory


async def list_territories(
    session: AsyncSession,
    county: Optional[str] = None,
    state: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Territory]:
    query = select(Territory)
    if county:
        query = query.where(Territory.county == county)
    if state:
        query = query.where(Territory.state == state)
    if status:
        query = query.where(Territory.status == status)
    query = query.order_by(Territory.opportunity_score.desc(), Territory.median_income.desc())
    result = await session.execute(query)
    return list(result.scalars().all())


async def protect_territory(
    session: AsyncSession,
    territory_id: int,
    professional_id: int,
    exclusivity_fee: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Territory:
    """Grant a one-year exclusive on an available territory.

    Raises ValueError when the professional's tier is below GOLD or the
    territory is not available.
    """
    now = now or datetime.utcnow()
    result = await session.execute(
        select(TierStatus).where(TierStatus.professional_id == professional_id)
    )
    tier = result.scalar_one_or_none()
    if not tier or tier.current_tier not in PROTECTION_TIERS:
        raise ValueError("Professional not eligible for territory protection")

    territory = await session.get(Territory, territory_id)
    if not territory or territory.status != "AVAILABLE":
        raise ValueError("Territory not available for protection")

    territory.status = "PROTECTED"
    territory.is_protected = True
    territory.protected_by_id = professional_id
    territory.protection_start = now
    territory.exclusive_until = now + timedelta(days=PROTECTION_DAYS)
    territory.monthly_fee = exclusivity_fee or get_settings().default_exclusivity_fee
    await session.flush()

    logger.info(f"Territory {territory.name} protected for professional {professional_id}")
    return territory


async def assign_professional(
    session: AsyncSession,
    territory_id: int,
    professional_id: int,
    assignment_type: str = "PRIMARY",
    priority: int = 1,
) -> TerritoryAssignment:
    result = await session.execute(
        select(TerritoryAssignment).where(
            TerritoryAssignment.territory_id == territory_id,
            TerritoryAssignment.professional_id == professional_id,
        )
    )
    if result.scalar_one_or_none():
        raise ValueError("Professional already assigned to this territory")

    assignment = TerritoryAssignment(
        territory_id=territory_id,
        professional_id=professional_id,
        assignment_type=assignment_type,
        priority=priority,
    )
    session.add(assignment)
    await session.flush()
    return assignment


async def update_territory_metrics(session: AsyncSession, territory_id: int) -> Optional[dict]:
    """Recount jobs and revenue for the territory's zip code."""
    territory = await session.get(Territory, territory_id)
    if not territory:
        return None

    jobs = []
    if territory.zip_code:
        result = await session.execute(
            select(Job).where(Job.zip_code == territory.zip_code).options(selectinload(Job.transactions))
        )
        jobs = result.scalars().all()

    territory.total_jobs = len(jobs)
    territory.total_revenue = sum(float(t.amount or 0) for j in jobs for t in j.transactions)
    territory.market_penetration = market_penetration(territory.total_jobs)
    await session.flush()

    return {
        "total_jobs": territory.total_jobs,
        "total_revenue": territory.total_revenue,
        "market_penetration": territory.market_penetration,
    }


async def home_county_territories(session: AsyncSession) -> dict:
    settings = get_settings()
    territories = await list_territories(session, county=settings.home_county, state=settings.home_state)
    return {"territories": territories, "metrics": county_metrics(territories)}


async def get_territory_analytics(session: AsyncSession, territory_id: Optional[int] = None) -> dict:
    query = select(Territory).options(
        selectinload(Territory.assignments)
        .selectinload(TerritoryAssignment.professional)
        .selectinload(Professional.tier_status)
    )
    if territory_id is not None:
        query = query.where(Territory.id == territory_id)
    result = await session.execute(query)
    return territory_analytics(list(result.scalars().all()))
