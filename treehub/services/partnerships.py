"""Strategic partnerships: relationship scoring and insurance referrals."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.models.database import Lead, Partnership, PartnershipActivity

logger = logging.getLogger("treehub.partnerships")

STARTING_RELATIONSHIP_SCORE = 50

TARGET_PARTNERSHIPS = {
    "INSURANCE_COMPANY": [
        "State Farm", "Allstate", "Liberty Mutual", "USAA", "Progressive", "Travelers",
    ],
    "MUNICIPAL_CONTRACT": [
        "Doylestown Borough", "Newtown Township", "Warrington Township",
        "Buckingham Township", "New Britain Borough",
    ],
}


def calculate_relationship_score(activity_count: int, revenue: float, leads: int) -> int:
    """Activity up to 30 points, revenue up to 40, leads up to 30."""
    activity_points = min(activity_count * 5, 30)
    revenue_points = min(revenue / 10000 * 40, 40)
    lead_points = min(leads * 2, 30)
    return round(min(activity_points + revenue_points + lead_points, 100))


def referral_revenue(estimated_cost: float, revenue_share: Optional[float]) -> float:
    return estimated_cost * (revenue_share or 0) / 100


async def create_partnership(session: AsyncSession, **data) -> Partnership:
    data.setdefault("relationship_score", STARTING_RELATIONSHIP_SCORE)
    partnership = Partnership(**data)
    session.add(partnership)
    await session.flush()
    return partnership


async def update_partnership_metrics(session: AsyncSession, partnership_id: int) -> Optional[Partnership]:
    partnership = await session.get(Partnership, partnership_id)
    if not partnership:
        return None

    result = await session.execute(
        select(PartnershipActivity).where(PartnershipActivity.partnership_id == partnership_id)
    )
    activities = result.scalars().all()

    partnership.total_leads = sum(a.leads_generated or 0 for a in activities)
    partnership.total_revenue = sum(float(a.revenue_impact or 0) for a in activities)
    partnership.cost_savings = sum(float(a.cost_savings or 0) for a in activities)
    partnership.relationship_score = calculate_relationship_score(
        len(activities), partnership.total_revenue, partnership.total_leads,
    )
    await session.flush()
    return partnership


async def record_activity(session: AsyncSession, partnership_id: int, **data) -> PartnershipActivity:
    activity = PartnershipActivity(partnership_id=partnership_id, **data)
    session.add(activity)
    await session.flush()
    await update_partnership_metrics(session, partnership_id)
    return activity


async def process_insurance_referral(
    session: AsyncSession,
    insurance_company: str,
    claim_number: str,
    customer: dict,
    estimated_cost: float,
) -> tuple[Lead, Partnership]:
    """Turn an insurer's claim into an emergency lead.

    Raises ValueError when no ACTIVE insurance partner matches the name.
    """
    result = await session.execute(
        select(Partnership).where(
            Partnership.partner_type == "INSURANCE_COMPANY",
            Partnership.status == "ACTIVE",
            func.lower(Partnership.name).contains(insurance_company.lower()),
        ).limit(1)
    )
    partnership = result.scalar_one_or_none()
    if not partnership:
        raise ValueError("No active insurance partnership found")

    lead = Lead(
        source="Insurance_Referral",
        service_type="Emergency",
        urgency="Immediate",
        status="New",
        customer_name=customer.get("name", ""),
        email=customer.get("email", ""),
        phone=customer.get("phone", ""),
        address=customer.get("address", ""),
        city=customer.get("city", ""),
        state=customer.get("state", ""),
        zip_code=customer.get("zip_code", ""),
        description=f"{partnership.name} claim {claim_number}",
        estimated_value=estimated_cost,
        partnership_id=partnership.id,
    )
    session.add(lead)

    await record_activity(
        session,
        partnership.id,
        activity_type="Lead_Share",
        description=f"Insurance referral for claim {claim_number}",
        leads_generated=1,
        revenue_impact=referral_revenue(estimated_cost, partnership.revenue_share),
    )
    logger.info(f"Insurance referral from {partnership.name}: claim {claim_number}, ${estimated_cost:,.0f}")
    return lead, partnership


async def initialize_target_partnerships(session: AsyncSession) -> dict:
    """Seed prospect partnerships for the home market. Existing names are skipped."""
    created = 0
    for partner_type, names in TARGET_PARTNERSHIPS.items():
        for name in names:
            result = await session.execute(select(Partnership.id).where(Partnership.name == name))
            if result.scalar_one_or_none():
                continue
            if partner_type == "INSURANCE_COMPANY":
                extra = {
                    "service_types": ["Storm Damage", "Emergency Response", "Tree Removal"],
                    "strategic_importance": "High",
                    "referral_fee": 250,
                    "revenue_share": 5,
                }
            else:
                extra = {
                    "service_areas": [name.replace(" Township", "").replace(" Borough", "")],
                    "service_types": ["Storm Response", "Road Clearing", "Park Maintenance"],
                    "strategic_importance": "Critical",
                }
            await create_partnership(session, name=name, partner_type=partner_type, status="PROSPECT", **extra)
            created += 1
    return {"created": created}


async def partnership_dashboard(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    result = await session.execute(select(Partnership).options(selectinload(Partnership.activities)))
    partnerships = result.scalars().all()
    count = len(partnerships)
    month_ago = now - timedelta(days=30)

    by_type: dict[str, int] = {}
    for p in partnerships:
        by_type[p.partner_type] = by_type.get(p.partner_type, 0) + 1

    recent = sorted(
        (
            {"partner_name": p.name, "activity_type": a.activity_type,
             "description": a.description, "created_at": a.created_at}
            for p in partnerships for a in p.activities
            if a.created_at and a.created_at >= month_ago
        ),
        key=lambda a: a["created_at"],
        reverse=True,
    )[:10]

    top = sorted(partnerships, key=lambda p: float(p.total_revenue or 0), reverse=True)[:5]
    return {
        "total_partnerships": count,
        "active_partnerships": sum(1 for p in partnerships if p.status == "ACTIVE"),
        "total_revenue": sum(float(p.total_revenue or 0) for p in partnerships),
        "total_leads": sum(p.total_leads or 0 for p in partnerships),
        "average_relationship_score": sum(p.relationship_score or 0 for p in partnerships) / count if count else 0,
        "by_type": by_type,
        "top_performers": [{"id": p.id, "name": p.name, "total_revenue": float(p.total_revenue or 0)} for p in top],
        "recent_activity": recent,
        "new_partnerships": sum(1 for p in partnerships if p.created_at and p.created_at > month_ago),
    }
