"""Revenue and commission calculator.

Applies per-category commission rates and margin assumptions to leads,
jobs and equipment deals, and rolls stored revenue records up into
analytics, trends, and 12-month projections.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.models.database import Job, Lead, RevenueRecord, Transaction

logger = logging.getLogger("treehub.revenue")

# ─── RATES ───────────────────────────────────────────────────────────────────

LEAD_COMMISSION_RATE = 0.25
LEAD_SOURCE_RATES = {
    "Storm_Response": 0.25,
    "Weather_Alert": 0.20,
    "SEO": 0.15,
    "Referral": 0.10,
}
DEFAULT_LEAD_SOURCE_RATE = 0.15

JOB_PLATFORM_FEE = 0.05
EQUIPMENT_RATES = {"EQUIPMENT_RENTAL": 0.08, "EQUIPMENT_SALE": 0.10}

LEAD_MARGIN = 95
JOB_MARGIN = 90
EQUIPMENT_MARGIN = 85
SUBSCRIPTION_MARGIN = 85

PERIOD_DAYS = {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}
AGENT_MONTHLY_COST = 50


def calculate_lead_commission(lead_value: float, commission_rate: float = LEAD_COMMISSION_RATE) -> float:
    return lead_value * commission_rate


def lead_source_rate(source: Optional[str]) -> float:
    return LEAD_SOURCE_RATES.get(source, DEFAULT_LEAD_SOURCE_RATE)


def equipment_rate(transaction_type: str) -> float:
    return EQUIPMENT_RATES["EQUIPMENT_RENTAL"] if transaction_type == "EQUIPMENT_RENTAL" else EQUIPMENT_RATES["EQUIPMENT_SALE"]


# ─── ROLLUPS ─────────────────────────────────────────────────────────────────

def group_revenue_by_month(records) -> list[dict]:
    """[{month: 'YYYY-MM', revenue}] sorted by month."""
    monthly: dict[str, float] = defaultdict(float)
    for r in records:
        monthly[r.created_at.strftime("%Y-%m")] += float(r.amount or 0)
    return [{"month": m, "revenue": monthly[m]} for m in sorted(monthly)]


def calculate_growth_rate(monthly: list[dict]) -> float:
    """Compound monthly growth between the first and last month."""
    if len(monthly) < 2:
        return 0.0
    first = monthly[0]["revenue"]
    last = monthly[-1]["revenue"]
    if first == 0:
        return 0.0
    return (last / first) ** (1 / (len(monthly) - 1)) - 1


def project_revenue(monthly: list[dict], now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    growth = calculate_growth_rate(monthly)
    current = monthly[-1]["revenue"] if monthly else 0

    projections = []
    for i in range(1, 13):
        projections.append({
            "month": (now + timedelta(days=30 * i)).strftime("%Y-%m"),
            "projected_revenue": round(current * (1 + growth) ** i),
            "confidence": round(max(0.5, 1 - i * 0.05), 2),
        })

    return {
        "current_month_revenue": current,
        "growth_rate": round(growth * 100),
        "projections": projections,
        "annual_projection": sum(p["projected_revenue"] for p in projections),
    }


def revenue_trend(records, start: datetime, period: str = "monthly") -> list[dict]:
    """Bucket revenue into days (or months, for a yearly period)."""
    days = PERIOD_DAYS.get(period, 30)
    intervals = 12 if period == "yearly" else days
    step = timedelta(days=days / intervals)

    buckets = []
    for i in range(intervals):
        lo = start + step * i
        hi = lo + step
        buckets.append({
            "date": lo.strftime("%Y-%m-%d"),
            "revenue": sum(float(r.amount or 0) for r in records if lo <= r.created_at < hi),
        })
    return buckets


def ai_roi_analysis(records) -> dict:
    """ROI of agent-attributed revenue against a flat monthly cost per agent type.

    ``records`` are revenue records with their ``agent`` loaded.
    """
    by_type: dict[str, dict] = {}
    for r in records:
        agent_type = r.agent.agent_type if r.agent else "Unknown"
        entry = by_type.setdefault(agent_type, {"revenue": 0.0, "cost": AGENT_MONTHLY_COST, "roi": 0.0})
        entry["revenue"] += float(r.amount or 0)

    for entry in by_type.values():
        entry["roi"] = (entry["revenue"] - entry["cost"]) / entry["cost"] * 100 if entry["cost"] else 0

    total_revenue = sum(float(r.amount or 0) for r in records)
    total_cost = len(by_type) * AGENT_MONTHLY_COST
    overall = (total_revenue - total_cost) / total_cost * 100 if total_cost else 0

    payback = math.ceil(total_cost / (total_revenue / 30)) if overall > 0 else None

    return {
        "total_ai_revenue": total_revenue,
        "total_ai_cost": total_cost,
        "overall_roi": round(overall),
        "roi_by_agent": by_type,
        "payback_period_days": payback,
    }


# ─── TRACKING ────────────────────────────────────────────────────────────────

async def track_lead_conversion(session: AsyncSession, lead_id: int, job_value: float) -> Optional[dict]:
    """Mark a lead converted and book the source-specific commission."""
    lead = await session.get(Lead, lead_id)
    if not lead:
        return None

    rate = lead_source_rate(lead.source)
    commission = job_value * rate

    lead.status = "Converted"
    lead.conversion_value = job_value
    lead.converted_at = datetime.utcnow()
    lead.commission = commission

    session.add(RevenueRecord(
        source="Lead_Generation",
        category="Lead_Conversion",
        subcategory=lead.source or "",
        amount=commission,
        gross_value=job_value,
        profit_margin=LEAD_MARGIN,
        lead_id=lead.id,
        professional_id=lead.assigned_professional_id,
    ))
    await session.flush()
    logger.info(f"Lead {lead_id} converted: ${job_value:,.0f} → ${commission:,.2f} commission")

    return {"lead_id": lead_id, "job_value": job_value, "commission": commission, "commission_rate": rate}


async def track_job_commission(session: AsyncSession, job_id: int) -> Optional[dict]:
    result = await session.execute(
        select(Job).where(Job.id == job_id).options(selectinload(Job.transactions))
    )
    job = result.scalar_one_or_none()
    if not job:
        return None

    job_value = sum(float(t.amount) for t in job.transactions if t.status == "COMPLETED")
    commission = job_value * JOB_PLATFORM_FEE

    session.add(RevenueRecord(
        source="Job_Completion",
        category="Job_Matching",
        subcategory=job.job_type,
        amount=commission,
        gross_value=job_value,
        profit_margin=JOB_MARGIN,
        job_id=job.id,
        professional_id=job.assigned_professional_id,
    ))
    await session.flush()

    return {"job_id": job_id, "job_value": job_value, "commission": commission}


async def track_equipment_commission(session: AsyncSession, transaction_id: int) -> Optional[dict]:
    txn = await session.get(Transaction, transaction_id)
    if not txn or txn.equipment_id is None:
        return None

    rate = equipment_rate(txn.transaction_type)
    commission = float(txn.amount) * rate

    session.add(RevenueRecord(
        source="Equipment_Transaction",
        category="Equipment_Intelligence",
        subcategory=txn.transaction_type,
        amount=commission,
        gross_value=float(txn.amount),
        profit_margin=EQUIPMENT_MARGIN,
        transaction_id=txn.id,
    ))
    await session.flush()

    return {
        "transaction_id": transaction_id,
        "transaction_value": float(txn.amount),
        "commission": commission,
        "commission_rate": rate,
    }


# ─── ANALYTICS ───────────────────────────────────────────────────────────────

async def _count(session: AsyncSession, stmt) -> int:
    return (await session.execute(stmt)).scalar() or 0


async def performance_metrics(session: AsyncSession, start: datetime) -> dict:
    total_leads = await _count(session, select(func.count(Lead.id)).where(Lead.created_at >= start))
    converted = await _count(session, select(func.count(Lead.id)).where(
        Lead.created_at >= start, Lead.status == "Converted",
    ))
    total_jobs = await _count(session, select(func.count(Job.id)).where(Job.created_at >= start))
    completed = await _count(session, select(func.count(Job.id)).where(
        Job.created_at >= start, Job.status == "COMPLETED",
    ))
    return {
        "lead_conversion_rate": converted / total_leads * 100 if total_leads else 0,
        "job_completion_rate": completed / total_jobs * 100 if total_jobs else 0,
        "total_leads": total_leads,
        "converted_leads": converted,
        "total_jobs": total_jobs,
        "completed_jobs": completed,
    }


async def revenue_analytics(session: AsyncSession, period: str = "monthly", now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    start = now - timedelta(days=PERIOD_DAYS.get(period, 30))

    result = await session.execute(
        select(RevenueRecord)
        .where(RevenueRecord.created_at >= start)
        .options(selectinload(RevenueRecord.agent))
    )
    records = result.scalars().all()

    by_category: dict[str, dict] = {}
    by_agent: dict[int, dict] = {}
    for r in records:
        cat = by_category.setdefault(r.category, {"category": r.category, "revenue": 0.0, "transactions": 0})
        cat["revenue"] += float(r.amount or 0)
        cat["transactions"] += 1
        if r.agent_id is not None:
            agent = by_agent.setdefault(r.agent_id, {
                "agent_id": r.agent_id,
                "agent_name": r.agent.name if r.agent else "Unknown",
                "agent_type": r.agent.agent_type if r.agent else "Unknown",
                "revenue": 0.0,
            })
            agent["revenue"] += float(r.amount or 0)

    return {
        "period": period,
        "total_revenue": sum(float(r.amount or 0) for r in records),
        "revenue_by_category": list(by_category.values()),
        "revenue_by_agent": list(by_agent.values()),
        "revenue_trend": revenue_trend(records, start, period),
        "performance_metrics": await performance_metrics(session, start),
    }


async def revenue_projections(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Project the next 12 months from the last 90 days of revenue."""
    now = now or datetime.utcnow()
    result = await session.execute(
        select(RevenueRecord)
        .where(RevenueRecord.created_at >= now - timedelta(days=90))
        .order_by(RevenueRecord.created_at)
    )
    return project_revenue(group_revenue_by_month(result.scalars().all()), now)


async def ai_roi(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    result = await session.execute(
        select(RevenueRecord)
        .where(RevenueRecord.agent_id.is_not(None), RevenueRecord.created_at >= now - timedelta(days=30))
        .options(selectinload(RevenueRecord.agent))
    )
    return ai_roi_analysis(result.scalars().all())
