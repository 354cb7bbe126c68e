"""Equipment intelligence: maintenance prediction, market value, utilization.

The analysis functions are pure over an Equipment row (with its
transactions loaded) plus the comparable and competitor prices fetched
by the async helpers at the bottom.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.models.database import Equipment, EquipmentIntelligence

logger = logging.getLogger("treehub.equipment")

# ─── CATEGORY TABLES ─────────────────────────────────────────────────────────

AGE_DEGRADATION = {
    "CHAINSAWS": 8, "CHIPPERS": 6, "STUMP_GRINDERS": 5,
    "CRANES": 3, "BUCKET_TRUCKS": 4, "TRUCKS": 5,
}
USAGE_DEGRADATION = {
    "CHAINSAWS": 0.01, "CHIPPERS": 0.005, "STUMP_GRINDERS": 0.008,
    "CRANES": 0.003, "BUCKET_TRUCKS": 0.004, "TRUCKS": 0.006,
}
SERVICE_INTERVAL_HOURS = {
    "CHAINSAWS": 50, "CHIPPERS": 100, "STUMP_GRINDERS": 80,
    "CRANES": 200, "BUCKET_TRUCKS": 150, "TRUCKS": 120,
}
COMMON_FAILURES = {
    "CHAINSAWS": ["Chain", "Bar", "Engine", "Clutch"],
    "CHIPPERS": ["Blades", "Engine", "Hydraulics", "Belts"],
    "STUMP_GRINDERS": ["Teeth", "Engine", "Hydraulics", "Tracks"],
    "CRANES": ["Hydraulics", "Engine", "Boom", "Cables"],
    "BUCKET_TRUCKS": ["Hydraulics", "Engine", "Transmission", "Boom"],
    "TRUCKS": ["Engine", "Transmission", "Brakes", "Tires"],
}
MAINTENANCE_BASE_COST = {
    "CHAINSAWS": 150, "CHIPPERS": 800, "STUMP_GRINDERS": 1200,
    "CRANES": 3500, "BUCKET_TRUCKS": 2200, "TRUCKS": 1800,
}
DEPRECIATION_RATE = {
    "CHAINSAWS": 0.15, "CHIPPERS": 0.12, "STUMP_GRINDERS": 0.10,
    "CRANES": 0.08, "BUCKET_TRUCKS": 0.10, "TRUCKS": 0.12,
}
CONDITION_MULTIPLIER = {"NEW": 1.0, "EXCELLENT": 0.9, "GOOD": 0.75, "FAIR": 0.6, "POOR": 0.4}

_SAW_SEASON = {3: 1.3, 4: 1.4, 5: 1.3, 6: 1.2, 7: 1.1, 8: 1.1, 9: 1.2, 10: 1.3}
SEASONAL_DEMAND = {
    "CHAINSAWS": _SAW_SEASON,
    "CHIPPERS": {3: 1.4, 4: 1.5, 5: 1.4, 6: 1.3, 7: 1.2, 8: 1.2, 9: 1.3, 10: 1.4},
    "STUMP_GRINDERS": _SAW_SEASON,
}

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
HOURS_PER_DAY = 8
RENTAL_DAYS = 3
RENTED_DAYS_PER_MONTH = 10
COMPARABLE_WINDOW_DAYS = 90
PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


# ─── MAINTENANCE ─────────────────────────────────────────────────────────────

def equipment_age(equipment, now: datetime) -> int:
    return now.year - equipment.year if equipment.year else 0


def maintenance_score(category: str, age: int, hours_used: float) -> int:
    score = 100 - age * AGE_DEGRADATION.get(category, 5) - hours_used * USAGE_DEGRADATION.get(category, 0.005)
    return max(0, min(100, round(score)))


def next_maintenance(category: str, hours_used: float, now: datetime) -> datetime:
    interval = SERVICE_INTERVAL_HOURS.get(category, 100)
    due_at = math.ceil((hours_used + 1) / interval) * interval
    days = math.ceil((due_at - hours_used) / HOURS_PER_DAY)
    return now + timedelta(days=days)


def predict_failures(category: str, age: int, hours_used: float) -> list[str]:
    failures = COMMON_FAILURES.get(category, ["Engine", "Hydraulics"])
    probability = min(0.8, age * 0.1 + hours_used * 0.0001)
    if probability > 0.6:
        return failures[:2]
    if probability > 0.4:
        return failures[:1]
    return []


def maintenance_cost(category: str, score: int) -> int:
    multiplier = 2.5 if score < 30 else 1.8 if score < 60 else 1.2
    return round(MAINTENANCE_BASE_COST.get(category, 500) * multiplier)


def maintenance_urgency(score: int) -> str:
    return "High" if score < 30 else "Medium" if score < 60 else "Low"


def analyze_maintenance(equipment, now: datetime) -> dict:
    age = equipment_age(equipment, now)
    hours = equipment.hours_used or 0
    score = maintenance_score(equipment.category, age, hours)
    return {
        "maintenance_score": score,
        "next_maintenance": next_maintenance(equipment.category, hours, now),
        "predicted_failures": predict_failures(equipment.category, age, hours),
        "urgency": maintenance_urgency(score),
        "estimated_cost": maintenance_cost(equipment.category, score),
    }


# ─── MARKET ──────────────────────────────────────────────────────────────────

def depreciated_value(equipment, now: datetime) -> int:
    """Declining-balance value from the list price, never below 10% of it."""
    list_price = equipment.original_price or equipment.price
    if not equipment.year or not list_price:
        return 0
    rate = DEPRECIATION_RATE.get(equipment.category, 0.12)
    value = list_price * (1 - rate) ** equipment_age(equipment, now)
    return round(max(list_price * 0.1, value))


def current_market_value(equipment, comparable_sales: list[float], now: datetime) -> int:
    if not comparable_sales:
        return depreciated_value(equipment, now)
    average = sum(comparable_sales) / len(comparable_sales)
    return round(average * CONDITION_MULTIPLIER.get(equipment.condition, 0.7))


def seasonal_multiplier(category: str, month: int) -> float:
    return SEASONAL_DEMAND.get(category, {}).get(month, 1.0)


def demand_score(equipment, now: datetime) -> int:
    views = min(100, (equipment.views or 0) * 2)
    inquiries = min(100, (equipment.inquiries or 0) * 10)
    return round((views + inquiries) / 2 * seasonal_multiplier(equipment.category, now.month))


def competitor_price(equipment, competitor_prices: list[float]) -> float:
    prices = [p for p in competitor_prices if p and p > 0]
    if not prices:
        return equipment.price or 0
    return sum(prices) / len(prices)


def optimal_pricing(market_value: float, demand: int, competitor: float) -> dict:
    price = market_value
    if demand > 80:
        price *= 1.15
    elif demand > 60:
        price *= 1.08
    elif demand < 30:
        price *= 0.92

    if competitor > 0:
        price = (price + competitor) / 2

    return {
        "suggested": round(price),
        "current": market_value,
        "competitor": round(competitor),
        "adjustment": round((price / market_value - 1) * 100) if market_value else 0,
    }


def analyze_market(equipment, comparable_sales: list[float], competitor_prices: list[float], now: datetime) -> dict:
    value = current_market_value(equipment, comparable_sales, now)
    demand = demand_score(equipment, now)
    competitor = competitor_price(equipment, competitor_prices)
    return {
        "current_market_value": value,
        "demand_score": demand,
        "competitor_pricing": competitor,
        "price_recommendation": optimal_pricing(value, demand, competitor),
    }


# ─── UTILIZATION ─────────────────────────────────────────────────────────────

def completed_rentals(equipment) -> list:
    return [
        t for t in equipment.transactions or []
        if t.transaction_type == "EQUIPMENT_RENTAL" and t.status == "COMPLETED"
    ]


def days_listed(equipment, now: datetime) -> int:
    listed = equipment.listed_at or equipment.created_at
    return (now - listed).days if listed else 0


def utilization_rate(equipment, rentals: list, now: datetime) -> int:
    if equipment.listing_type != "RENT":
        return 0
    listed = days_listed(equipment, now)
    return round(len(rentals) * RENTAL_DAYS / listed * 100) if listed > 0 else 0


def peak_months(rentals: list) -> list[str]:
    """Months whose rental count beats the monthly average by 20%."""
    counts: dict[int, int] = {}
    for t in rentals:
        if t.created_at:
            counts[t.created_at.month] = counts.get(t.created_at.month, 0) + 1
    average = sum(counts.values()) / 12
    return [MONTH_NAMES[m - 1] for m, c in sorted(counts.items()) if c > average * 1.2]


def downtime(equipment, rentals: list, now: datetime) -> dict:
    listed = days_listed(equipment, now)
    idle = listed - len(rentals) * RENTAL_DAYS
    return {
        "total_downtime_days": idle,
        "downtime_percentage": round(idle / listed * 100) if listed > 0 else 0,
        "average_days_between_rentals": round(idle / (len(rentals) - 1)) if len(rentals) > 1 else 0,
    }


def efficiency_score(rate: int, idle: dict) -> int:
    return round((rate + max(0, 100 - idle["downtime_percentage"])) / 2)


def analyze_utilization(equipment, now: datetime) -> dict:
    rentals = completed_rentals(equipment)
    rate = utilization_rate(equipment, rentals, now)
    idle = downtime(equipment, rentals, now)
    return {
        "utilization_rate": rate,
        "peak_periods": peak_months(rentals),
        "downtime": idle,
        "efficiency": efficiency_score(rate, idle),
    }


# ─── REVENUE ─────────────────────────────────────────────────────────────────

def current_revenue(equipment, now: datetime) -> float:
    year_ago = now - timedelta(days=365)
    return sum(
        t.amount or 0 for t in equipment.transactions or []
        if t.status == "COMPLETED" and t.created_at and t.created_at >= year_ago
    )


def demand_rate_multiplier(demand: int) -> float:
    if demand > 80:
        return 1.2
    if demand > 60:
        return 1.1
    if demand < 30:
        return 0.9
    return 1.0


def optimize_pricing(equipment, market: dict) -> dict:
    if equipment.listing_type == "RENT":
        multiplier = demand_rate_multiplier(market["demand_score"])
        return {
            "daily": round((equipment.daily_rate or 0) * multiplier),
            "adjustment": round((multiplier - 1) * 100),
        }
    return {
        "suggested": market["price_recommendation"]["suggested"],
        "current": equipment.price or 0,
        "adjustment": market["price_recommendation"]["adjustment"],
    }


def marketing_recommendations(equipment) -> list[str]:
    tips = []
    if (equipment.views or 0) < 10:
        tips.append("Improve listing photos and description")
    if (equipment.inquiries or 0) < 2:
        tips.append("Consider promotional pricing or featured listing")
    if len(equipment.images or []) < 3:
        tips.append("Add more high-quality images")
    if equipment.listing_type == "RENT" and not equipment.delivery_available:
        tips.append("Consider offering delivery service")
    tips.append("Update listing during peak season months")
    return tips


def projected_revenue(equipment, pricing: dict) -> float:
    if equipment.listing_type == "RENT":
        return pricing["daily"] * RENTED_DAYS_PER_MONTH * 12
    return pricing.get("suggested") or equipment.price or equipment.daily_rate or 0


def optimize_revenue(equipment, market: dict, now: datetime) -> dict:
    current = current_revenue(equipment, now)
    pricing = optimize_pricing(equipment, market)
    projected = projected_revenue(equipment, pricing)
    additional = projected - current
    return {
        "current_revenue": current,
        "projected_revenue": projected,
        "additional_revenue": additional,
        "optimized_pricing": pricing,
        "marketing_recommendations": marketing_recommendations(equipment),
        "roi": round(additional / current * 100) if current > 0 else 0,
    }


# ─── RECOMMENDATIONS ─────────────────────────────────────────────────────────

def build_recommendations(equipment, maintenance: dict, market: dict, utilization: dict, revenue: dict) -> list[dict]:
    recs = []
    if maintenance["maintenance_score"] < 30:
        recs.append({
            "type": "maintenance",
            "priority": "high",
            "title": "Urgent Maintenance Required",
            "description": "Equipment requires immediate attention. Predicted issues: "
                           + ", ".join(maintenance["predicted_failures"]),
            "estimated_cost": maintenance["estimated_cost"],
            "timeline": "Immediate",
        })

    adjustment = market["price_recommendation"]["adjustment"]
    if abs(adjustment) > 10:
        direction = "increasing" if adjustment > 0 else "decreasing"
        recs.append({
            "type": "pricing",
            "priority": "medium",
            "title": "Price Adjustment Recommended",
            "description": f"Consider {direction} price by {abs(adjustment)}%",
            "potential_revenue": revenue["additional_revenue"],
            "timeline": "This week",
        })

    if utilization["utilization_rate"] < 50 and equipment.listing_type == "RENT":
        recs.append({
            "type": "utilization",
            "priority": "medium",
            "title": "Improve Equipment Utilization",
            "description": "Low utilization rate detected. Consider marketing improvements or pricing adjustments.",
            "suggestions": revenue["marketing_recommendations"],
            "timeline": "Next month",
        })
    return recs[:5]


def analyze_equipment(
    equipment,
    comparable_sales: Optional[list[float]] = None,
    competitor_prices: Optional[list[float]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Full analysis of one listing. ``equipment.transactions`` must be loaded."""
    now = now or datetime.utcnow()
    maintenance = analyze_maintenance(equipment, now)
    market = analyze_market(equipment, comparable_sales or [], competitor_prices or [], now)
    utilization = analyze_utilization(equipment, now)
    revenue = optimize_revenue(equipment, market, now)
    return {
        "equipment_id": equipment.id,
        "maintenance": maintenance,
        "market": market,
        "utilization": utilization,
        "revenue": revenue,
        "recommendations": build_recommendations(equipment, maintenance, market, utilization, revenue),
        "revenue_impact": revenue["additional_revenue"],
    }


def fleet_insights(fleet) -> dict:
    """Roll-up over listings with their latest ``intelligence`` rows."""
    breakdown: dict[str, int] = {}
    for item in fleet:
        breakdown[item.category] = breakdown.get(item.category, 0) + 1

    intel = [item.intelligence for item in fleet if item.intelligence]
    count = len(fleet)
    return {
        "total_equipment": count,
        "category_breakdown": breakdown,
        "average_utilization": round(sum(i.utilization_rate or 0 for i in intel) / count) if count else 0,
        "total_maintenance_costs": sum(i.maintenance_cost or 0 for i in intel),
        "equipment_needing_maintenance": sum(1 for i in intel if (i.maintenance_score or 0) < 60),
        "underutilized_equipment": sum(1 for i in intel if (i.utilization_rate or 0) < 30),
    }


def top_recommendations(analyses: list[dict], limit: int = 10) -> list[dict]:
    recs = [r for a in analyses for r in a.get("recommendations", [])]
    recs.sort(key=lambda r: (PRIORITY_ORDER.get(r["priority"], 0), r.get("potential_revenue", 0)), reverse=True)
    return recs[:limit]


# ─── PERSISTENCE ─────────────────────────────────────────────────────────────

async def comparable_sale_prices(session: AsyncSession, equipment: Equipment, now: datetime) -> list[float]:
    result = await session.execute(
        select(Equipment.price).where(
            Equipment.category == equipment.category,
            Equipment.make == equipment.make,
            Equipment.status == "SOLD",
            Equipment.sold_at >= now - timedelta(days=COMPARABLE_WINDOW_DAYS),
        ).order_by(Equipment.sold_at.desc()).limit(10)
    )
    return [p or 0 for p in result.scalars().all()]


async def competitor_listing_prices(session: AsyncSession, equipment: Equipment) -> list[float]:
    result = await session.execute(
        select(Equipment).where(
            Equipment.category == equipment.category,
            Equipment.status == "ACTIVE",
            Equipment.listing_type == equipment.listing_type,
            Equipment.id != equipment.id,
        ).limit(20)
    )
    return [e.price or e.daily_rate or 0 for e in result.scalars().all()]


async def save_intelligence(session: AsyncSession, equipment: Equipment, analysis: dict) -> EquipmentIntelligence:
    """Upsert the EquipmentIntelligence row for a listing."""
    maintenance = analysis["maintenance"]
    market = analysis["market"]
    utilization = analysis["utilization"]
    revenue = analysis["revenue"]

    result = await session.execute(
        select(EquipmentIntelligence).where(EquipmentIntelligence.equipment_id == equipment.id)
    )
    intel = result.scalar_one_or_none()
    if intel is None:
        intel = EquipmentIntelligence(equipment_id=equipment.id)
        session.add(intel)

    intel.maintenance_score = maintenance["maintenance_score"]
    intel.next_maintenance = maintenance["next_maintenance"]
    intel.predicted_failures = maintenance["predicted_failures"]
    intel.maintenance_cost = maintenance["estimated_cost"]
    intel.maintenance_urgency = maintenance["urgency"]
    intel.market_value = market["current_market_value"]
    intel.demand_score = market["demand_score"]
    intel.optimal_price = market["price_recommendation"]["suggested"]
    intel.price_adjustment = market["price_recommendation"]["adjustment"]
    intel.competitor_price = market["competitor_pricing"]
    intel.utilization_rate = utilization["utilization_rate"]
    intel.efficiency_score = utilization["efficiency"]
    intel.downtime_hours = utilization["downtime"]["total_downtime_days"] * 24
    intel.peak_months = utilization["peak_periods"]
    intel.suggested_rental_price = revenue["optimized_pricing"].get("daily")
    intel.projected_revenue = revenue["projected_revenue"]
    intel.recommendations = analysis["recommendations"]
    await session.flush()
    return intel


async def analyze_listing(session: AsyncSession, equipment_id: int, now: Optional[datetime] = None) -> Optional[dict]:
    """Analyze and persist one listing. None when the listing does not exist."""
    now = now or datetime.utcnow()
    result = await session.execute(
        select(Equipment).where(Equipment.id == equipment_id).options(selectinload(Equipment.transactions))
    )
    equipment = result.scalar_one_or_none()
    if not equipment:
        return None

    analysis = analyze_equipment(
        equipment,
        await comparable_sale_prices(session, equipment, now),
        await competitor_listing_prices(session, equipment),
        now,
    )
    await save_intelligence(session, equipment, analysis)
    logger.info(f"Analyzed equipment {equipment.id} ({equipment.category}): "
                f"maintenance {analysis['maintenance']['maintenance_score']}, "
                f"impact ${analysis['revenue_impact']:,.0f}")
    return analysis


async def analyze_fleet(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Analyze every ACTIVE listing. A listing that fails is logged and skipped."""
    now = now or datetime.utcnow()
    result = await session.execute(select(Equipment.id).where(Equipment.status == "ACTIVE"))
    ids = list(result.scalars().all())

    analyses = []
    for equipment_id in ids:
        try:
            async with session.begin_nested():
                analysis = await analyze_listing(session, equipment_id, now)
            if analysis:
                analyses.append(analysis)
        except Exception as e:
            logger.error(f"Failed to analyze equipment {equipment_id}: {e}")

    result = await session.execute(
        select(Equipment).where(Equipment.status == "ACTIVE")
        .options(selectinload(Equipment.intelligence))
        .execution_options(populate_existing=True)
    )
    fleet = result.scalars().all()
    return {
        "processed_count": len(analyses),
        "total_equipment": len(ids),
        "market_insights": fleet_insights(fleet),
        "top_recommendations": top_recommendations(analyses),
        "total_revenue_impact": sum(a["revenue_impact"] for a in analyses),
    }
