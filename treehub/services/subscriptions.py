"""AI subscription plans: pricing, feature flags, monthly limits, and billing.

Plan arithmetic is pure; the service functions below it load and persist
``Subscription`` rows and book their revenue.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import JobMatch, Lead, RevenueRecord, Subscription
from treehub.services.revenue import SUBSCRIPTION_MARGIN
from treehub.services.tiers import month_bounds

logger = logging.getLogger("treehub.subscriptions")

# ─── PLANS ───────────────────────────────────────────────────────────────────

SUBSCRIPTION_PLANS = {
    "BASIC": {
        "monthly_price": 99,
        "annual_price": 990,        # two months free
        "features": {
            "storm_response_agent": False,
            "job_matching_agent": True,
            "equipment_intelligence": False,
            "weather_integration": True,
            "advanced_analytics": False,
            "api_access": False,
        },
        "limits": {"monthly_lead_limit": 50, "monthly_job_matches": 100, "weather_api_calls": 1000},
    },
    "PREMIUM": {
        "monthly_price": 299,
        "annual_price": 2990,
        "features": {
            "storm_response_agent": True,
            "job_matching_agent": True,
            "equipment_intelligence": True,
            "weather_integration": True,
            "advanced_analytics": True,
            "api_access": False,
        },
        "limits": {"monthly_lead_limit": 200, "monthly_job_matches": 500, "weather_api_calls": 5000},
    },
    "ENTERPRISE": {
        "monthly_price": 999,
        "annual_price": 9990,
        "features": {
            "storm_response_agent": True,
            "job_matching_agent": True,
            "equipment_intelligence": True,
            "weather_integration": True,
            "advanced_analytics": True,
            "api_access": True,
        },
        "limits": {"monthly_lead_limit": 1000, "monthly_job_matches": 2000, "weather_api_calls": 20000},
    },
}

TRIAL_DAYS = 14
MONTHLY_PERIOD_DAYS = 30
ANNUAL_PERIOD_DAYS = 365
ANNUAL_PERIOD_MIN_DAYS = 35     # longer periods bill at the annual price

LIMIT_FIELDS = {"leads": "monthly_lead_limit", "job_matches": "monthly_job_matches"}


def get_plan(tier: str) -> dict:
    """Plan config for a tier. Raises ValueError for an unknown tier."""
    try:
        return SUBSCRIPTION_PLANS[tier]
    except KeyError:
        raise ValueError(f"Unknown subscription tier: {tier}")


def plan_price(tier: str, is_annual: bool = False) -> float:
    plan = get_plan(tier)
    return plan["annual_price"] if is_annual else plan["monthly_price"]


def period_days(is_annual: bool) -> int:
    return ANNUAL_PERIOD_DAYS if is_annual else MONTHLY_PERIOD_DAYS


def is_annual_period(subscription) -> bool:
    start, end = subscription.current_period_start, subscription.current_period_end
    if not (start and end):
        return False
    return end - start > timedelta(days=ANNUAL_PERIOD_MIN_DAYS)


def apply_plan(subscription, tier: str) -> None:
    """Copy a plan's prices, features and limits onto a subscription."""
    plan = get_plan(tier)
    subscription.tier = tier
    subscription.monthly_price = plan["monthly_price"]
    subscription.annual_price = plan["annual_price"]
    subscription.features = dict(plan["features"])
    for field, value in plan["limits"].items():
        setattr(subscription, field, value)


def within_limit(subscription, limit_type: str, used: int) -> bool:
    """Whether one more unit of ``limit_type`` fits this month.

    Only ACTIVE subscriptions have any allowance. Limit types without a
    monthly counter are always allowed.
    """
    if not subscription or subscription.status != "ACTIVE":
        return False
    field = LIMIT_FIELDS.get(limit_type)
    if field is None:
        return True
    return used < (getattr(subscription, field) or 0)


def subscription_analytics(subscriptions, records) -> dict:
    """Counts by status plus revenue by plan over the given revenue records."""
    total = len(subscriptions)
    active = sum(1 for s in subscriptions if s.status == "ACTIVE")
    cancelled = sum(1 for s in subscriptions if s.status == "CANCELLED")

    by_tier: dict[str, float] = {}
    for r in records:
        by_tier[r.subcategory] = by_tier.get(r.subcategory, 0.0) + float(r.amount or 0)

    return {
        "total_subscriptions": total,
        "active_subscriptions": active,
        "trial_subscriptions": sum(1 for s in subscriptions if s.status == "TRIAL"),
        "conversion_rate": active / total * 100 if total else 0,
        "churn_rate": cancelled / total * 100 if total else 0,
        "revenue_by_tier": [{"tier": tier, "revenue": revenue} for tier, revenue in by_tier.items()],
        "monthly_recurring_revenue": sum(by_tier.values()),
    }


# ─── SERVICE ─────────────────────────────────────────────────────────────────

def _revenue(subscription, amount: float, subcategory: str, margin: float = 0) -> RevenueRecord:
    return RevenueRecord(
        source="Subscription",
        category="AI_Subscription",
        subcategory=subcategory,
        revenue_type="Recurring",
        amount=amount,
        gross_value=amount,
        profit_margin=margin,
        professional_id=subscription.professional_id,
    )


async def get_subscription(session: AsyncSession, professional_id: int) -> Optional[Subscription]:
    result = await session.execute(
        select(Subscription).where(Subscription.professional_id == professional_id)
    )
    return result.scalar_one_or_none()


async def create_subscription(
    session: AsyncSession,
    professional_id: int,
    tier: str,
    is_annual: bool = False,
    now: Optional[datetime] = None,
) -> Subscription:
    """Start a 14-day trial, or upgrade when the professional already subscribes."""
    get_plan(tier)
    if await get_subscription(session, professional_id):
        return await upgrade_subscription(session, professional_id, tier, is_annual)

    now = now or datetime.utcnow()
    subscription = Subscription(
        professional_id=professional_id,
        status="TRIAL",
        trial_ends_at=now + timedelta(days=TRIAL_DAYS),
        current_period_start=now,
        current_period_end=now + timedelta(days=period_days(is_annual)),
    )
    apply_plan(subscription, tier)
    session.add(subscription)
    await session.flush()

    # Trial start books no revenue yet
    session.add(_revenue(subscription, 0, tier))
    await session.flush()
    logger.info(f"Professional {professional_id} started a {tier} trial")
    return subscription


async def upgrade_subscription(
    session: AsyncSession, professional_id: int, tier: str, is_annual: bool = False
) -> Optional[Subscription]:
    subscription = await get_subscription(session, professional_id)
    if not subscription:
        return None

    apply_plan(subscription, tier)
    subscription.status = "ACTIVE"
    subscription.cancelled_at = None
    session.add(_revenue(subscription, plan_price(tier, is_annual), f"{tier}_Upgrade"))
    await session.flush()
    logger.info(f"Professional {professional_id} moved to {tier}")
    return subscription


async def process_payment(
    session: AsyncSession, professional_id: int, now: Optional[datetime] = None
) -> Optional[dict]:
    """Bill the current plan, start the next period, and book the revenue."""
    subscription = await get_subscription(session, professional_id)
    if not subscription:
        return None

    now = now or datetime.utcnow()
    annual = is_annual_period(subscription)
    amount = float((subscription.annual_price if annual else subscription.monthly_price) or 0)

    subscription.status = "ACTIVE"
    subscription.current_period_start = now
    subscription.current_period_end = now + timedelta(days=period_days(annual))
    session.add(_revenue(subscription, amount, subscription.tier, SUBSCRIPTION_MARGIN))
    await session.flush()

    logger.info(f"Subscription payment from professional {professional_id}: ${amount:,.0f}")
    return {"success": True, "amount": amount, "next_billing_date": subscription.current_period_end}


async def check_limit(
    session: AsyncSession, professional_id: int, limit_type: str, now: Optional[datetime] = None
) -> bool:
    subscription = await get_subscription(session, professional_id)
    if not subscription or subscription.status != "ACTIVE":
        return False

    start, end = month_bounds(now or datetime.utcnow())
    used = 0
    if limit_type == "leads":
        used = await session.scalar(
            select(func.count(Lead.id)).where(
                Lead.assigned_professional_id == professional_id,
                Lead.created_at >= start,
                Lead.created_at < end,
            )
        )
    elif limit_type == "job_matches":
        used = await session.scalar(
            select(func.count(JobMatch.id)).where(
                JobMatch.professional_id == professional_id,
                JobMatch.created_at >= start,
                JobMatch.created_at < end,
            )
        )
    return within_limit(subscription, limit_type, used or 0)


async def cancel_subscription(
    session: AsyncSession, professional_id: int, now: Optional[datetime] = None
) -> Optional[Subscription]:
    subscription = await get_subscription(session, professional_id)
    if not subscription:
        return None
    subscription.status = "CANCELLED"
    subscription.cancelled_at = now or datetime.utcnow()
    await session.flush()
    logger.info(f"Professional {professional_id} cancelled their subscription")
    return subscription


async def get_subscription_analytics(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    subscriptions = (await session.execute(select(Subscription))).scalars().all()
    records = (await session.execute(
        select(RevenueRecord).where(
            RevenueRecord.category == "AI_Subscription",
            RevenueRecord.created_at >= now - timedelta(days=30),
        )
    )).scalars().all()
    return subscription_analytics(subscriptions, records)
