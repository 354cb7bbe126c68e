"""Professional tier eligibility engine.

Professionals climb BRONZE → SILVER → GOLD → PLATINUM → ELITE by meeting
static monthly thresholds on completed jobs, revenue, rating, and
complaint ratio.  Promotion is only ever one tier at a time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.models.database import Job, Professional, TierStatus

logger = logging.getLogger("treehub.tiers")


# ─── CRITERIA ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TierCriteria:
    tier: str
    min_monthly_jobs: int
    min_monthly_revenue: float
    min_rating: float
    max_complaint_ratio: float
    special_requirements: list[str] = field(default_factory=list)


TIER_ORDER = ["BRONZE", "SILVER", "GOLD", "PLATINUM", "ELITE"]

TIER_CRITERIA: dict[str, TierCriteria] = {
    "BRONZE":   TierCriteria("BRONZE", 1, 500, 3.0, 0.30),
    "SILVER":   TierCriteria("SILVER", 3, 1500, 3.5, 0.20),
    "GOLD":     TierCriteria("GOLD", 8, 5000, 4.0, 0.15,
                             ["Territory protection eligibility", "Priority alerts"]),
    "PLATINUM": TierCriteria("PLATINUM", 15, 12000, 4.3, 0.10,
                             ["Exclusive zip codes", "Advanced analytics"]),
    "ELITE":    TierCriteria("ELITE", 25, 25000, 4.7, 0.05,
                             ["Market leader status", "Franchise eligibility"]),
}

PROMOTION_POINTS = 100


def next_tier(tier: str) -> Optional[str]:
    idx = TIER_ORDER.index(tier)
    return TIER_ORDER[idx + 1] if idx + 1 < len(TIER_ORDER) else None


def tier_benefits(tier: str) -> dict:
    benefits = {
        "territory_protection": False,
        "bonus_percentage": 0,
        "priority_alerts": False,
        "advanced_analytics": False,
    }
    if tier == "GOLD":
        benefits.update(territory_protection=True, bonus_percentage=5, priority_alerts=True)
    elif tier in ("PLATINUM", "ELITE"):
        benefits.update(
            territory_protection=True,
            bonus_percentage=10 if tier == "PLATINUM" else 15,
            priority_alerts=True,
            advanced_analytics=True,
        )
    return benefits


# ─── METRICS ─────────────────────────────────────────────────────────────────

def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def compute_monthly_metrics(jobs, now: Optional[datetime] = None) -> dict:
    """Performance over jobs completed in the current calendar month.

    ``jobs`` must carry ``transactions`` and ``reviews``.  Reviews rated 2
    or lower count as complaints.
    """
    start, end = month_bounds(now or datetime.utcnow())
    done = [
        j for j in jobs
        if j.status == "COMPLETED" and j.completed_at is not None and start <= j.completed_at < end
    ]

    revenue = sum(float(t.amount) for j in done for t in j.transactions)
    ratings = [r.rating for j in done for r in j.reviews]
    complaints = sum(1 for r in ratings if r <= 2)

    return {
        "monthly_jobs": len(done),
        "monthly_revenue": revenue,
        "average_rating": sum(ratings) / len(ratings) if ratings else 0,
        "complaint_count": complaints,
        "complaint_ratio": complaints / len(ratings) if ratings else 0,
    }


def complaint_ratio(status) -> float:
    return (status.complaint_count or 0) / max(status.monthly_jobs or 0, 1)


def check_advancement(status) -> dict:
    """Compare a tier status against the next tier's thresholds."""
    upcoming = next_tier(status.current_tier)
    if upcoming is None:
        return {"eligible": False, "reason": "Already at highest tier"}

    criteria = TIER_CRITERIA[upcoming]
    jobs = status.monthly_jobs or 0
    revenue = float(status.monthly_revenue or 0)
    rating = float(status.average_rating or 0)
    ratio = complaint_ratio(status)

    eligible = (
        jobs >= criteria.min_monthly_jobs
        and revenue >= criteria.min_monthly_revenue
        and rating >= criteria.min_rating
        and ratio <= criteria.max_complaint_ratio
    )

    return {
        "eligible": eligible,
        "next_tier": upcoming,
        "criteria": criteria,
        "details": {
            "jobs": f"{jobs}/{criteria.min_monthly_jobs}",
            "revenue": f"${revenue:g}/${criteria.min_monthly_revenue:g}",
            "rating": f"{rating:g}/{criteria.min_rating}",
            "complaints": f"{ratio:.2f}/{criteria.max_complaint_ratio}",
        },
        "current_performance": {
            "monthly_jobs": jobs,
            "monthly_revenue": revenue,
            "average_rating": rating,
            "complaint_ratio": ratio,
        },
    }


def apply_promotion(status, now: Optional[datetime] = None) -> str:
    """Move a status up one tier in place and return the new tier."""
    upcoming = next_tier(status.current_tier)
    if upcoming is None:
        raise ValueError("Already at highest tier")

    status.previous_tier = status.current_tier
    status.current_tier = upcoming
    status.status = "PROMOTED"
    status.months_in_tier = 0
    status.points = (status.points or 0) + PROMOTION_POINTS
    status.badges = [*(status.badges or []), f"{upcoming}_TIER_ACHIEVED"]
    status.is_eligible_for_promotion = False
    status.next_tier = next_tier(upcoming)
    status.promoted_at = now or datetime.utcnow()
    for key, value in tier_benefits(upcoming).items():
        setattr(status, key, value)
    return upcoming


def tier_analytics(statuses) -> dict:
    total = len(statuses)
    distribution: dict[str, int] = {}
    for s in statuses:
        distribution[s.current_tier] = distribution.get(s.current_tier, 0) + 1

    def avg(values):
        values = list(values)
        return sum(values) / len(values) if values else 0

    top = sorted(
        (s for s in statuses if s.current_tier in ("PLATINUM", "ELITE")),
        key=lambda s: float(s.monthly_revenue or 0),
        reverse=True,
    )[:10]

    return {
        "total_professionals": total,
        "tier_distribution": distribution,
        "average_metrics": {
            "monthly_jobs": avg(s.monthly_jobs or 0 for s in statuses),
            "monthly_revenue": avg(float(s.monthly_revenue or 0) for s in statuses),
            "average_rating": avg(float(s.average_rating or 0) for s in statuses),
        },
        "top_performers": [
            {
                "professional_id": s.professional_id,
                "tier": s.current_tier,
                "monthly_revenue": float(s.monthly_revenue or 0),
            }
            for s in top
        ],
        "promotion_eligible": sum(1 for s in statuses if s.is_eligible_for_promotion),
    }


# ─── SERVICE ─────────────────────────────────────────────────────────────────

async def get_tier_status(session: AsyncSession, professional_id: int) -> Optional[TierStatus]:
    result = await session.execute(
        select(TierStatus).where(TierStatus.professional_id == professional_id)
    )
    return result.scalar_one_or_none()


async def initialize_tier(session: AsyncSession, professional_id: int) -> TierStatus:
    existing = await get_tier_status(session, professional_id)
    if existing:
        return existing

    status = TierStatus(
        professional_id=professional_id,
        current_tier="BRONZE",
        status="ACTIVE",
        points=0,
        months_in_tier=0,
        badges=[],
        next_tier="SILVER",
    )
    session.add(status)
    await session.flush()
    return status


async def update_performance_metrics(
    session: AsyncSession, professional_id: int, now: Optional[datetime] = None
) -> Optional[dict]:
    status = await get_tier_status(session, professional_id)
    if not status:
        return None

    start, end = month_bounds(now or datetime.utcnow())
    result = await session.execute(
        select(Job)
        .where(
            Job.assigned_professional_id == professional_id,
            Job.status == "COMPLETED",
            Job.completed_at >= start,
            Job.completed_at < end,
        )
        .options(selectinload(Job.transactions), selectinload(Job.reviews))
    )
    metrics = compute_monthly_metrics(result.scalars().all(), now)

    status.monthly_jobs = metrics["monthly_jobs"]
    status.monthly_revenue = metrics["monthly_revenue"]
    status.average_rating = metrics["average_rating"]
    status.complaint_count = metrics["complaint_count"]
    await session.flush()
    return metrics


async def check_tier_advancement(session: AsyncSession, professional_id: int) -> Optional[dict]:
    """Evaluate and persist promotion eligibility."""
    status = await get_tier_status(session, professional_id)
    if not status:
        return None

    check = check_advancement(status)
    if check["eligible"]:
        status.is_eligible_for_promotion = True
        status.next_tier = check["next_tier"]
        await session.flush()
    return check


async def promote_professional(session: AsyncSession, professional_id: int) -> Optional[TierStatus]:
    status = await get_tier_status(session, professional_id)
    if not status:
        return None

    check = check_advancement(status)
    if not check["eligible"]:
        raise ValueError("Professional not eligible for promotion")

    new_tier = apply_promotion(status)
    await session.flush()
    logger.info(f"Professional {professional_id} promoted to {new_tier}")
    return status


async def tier_dashboard(session: AsyncSession, professional_id: int) -> Optional[dict]:
    status = await get_tier_status(session, professional_id)
    if not status:
        return None

    check = check_advancement(status)
    return {
        "current_tier": status.current_tier,
        "tier_status": status.status,
        "months_in_tier": status.months_in_tier,
        "points": status.points,
        "benefits": {
            "territory_protection": status.territory_protection,
            "bonus_percentage": status.bonus_percentage,
            "priority_alerts": status.priority_alerts,
            "advanced_analytics": status.advanced_analytics,
        },
        "performance": {
            "monthly_jobs": status.monthly_jobs,
            "monthly_revenue": float(status.monthly_revenue or 0),
            "average_rating": float(status.average_rating or 0),
            "complaint_count": status.complaint_count,
        },
        "advancement": {
            "eligible": check["eligible"],
            "next_tier": check.get("next_tier"),
            "requirements": check.get("details"),
        },
        "badges": status.badges or [],
    }


async def get_tier_analytics(session: AsyncSession) -> dict:
    result = await session.execute(select(TierStatus))
    return tier_analytics(result.scalars().all())


async def monthly_tier_review(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Refresh metrics and eligibility for every professional with a tier."""
    now = now or datetime.utcnow()
    result = await session.execute(
        select(Professional.id)
        .join(TierStatus, TierStatus.professional_id == Professional.id)
        .where(Professional.role.in_(["PROFESSIONAL", "COMPANY"]))
    )
    ids = result.scalars().all()
    summary = {"reviewed": 0, "eligible": 0, "errors": []}

    for professional_id in ids:
        try:
            async with session.begin_nested():
                await update_performance_metrics(session, professional_id, now)
                check = await check_tier_advancement(session, professional_id)
                status = await get_tier_status(session, professional_id)
                status.months_in_tier = (status.months_in_tier or 0) + 1
                status.last_reviewed_at = now
            summary["reviewed"] += 1
            if check and check["eligible"]:
                summary["eligible"] += 1
        except Exception as e:
            logger.error(f"Tier review failed for professional {professional_id}: {e}")
            summary["errors"].append(f"Failed to review professional {professional_id}")

    logger.info(
        f"Monthly tier review: {summary['reviewed']} reviewed, "
        f"{summary['eligible']} eligible, {len(summary['errors'])} errors"
    )
    return summary
