"""Contractor/job match scoring engine.

Scores a contractor against a job on four factors (location, skill,
availability, price), combines them into one weighted match score, and
derives a suggested bid and win probability for each candidate.
Every function here is pure; callers fetch the records.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from treehub.services.geocode import has_coordinates, haversine_miles, travel_distance


# ─── WEIGHTS ─────────────────────────────────────────────────────────────────

DEFAULT_WEIGHTS = {"location": 0.3, "skill": 0.4, "availability": 0.2, "price": 0.1}


def calculate_job_match_score(
    location: float,
    skill: float,
    availability: float,
    price: float,
    weights: Optional[dict] = None,
) -> float:
    """Weighted sum of the four factor scores (each 0-1)."""
    w = weights or DEFAULT_WEIGHTS
    return (
        location * w["location"]
        + skill * w["skill"]
        + availability * w["availability"]
        + price * w["price"]
    )


# ─── LOCATION ────────────────────────────────────────────────────────────────

DISTANCE_BANDS = [(10, 1.0), (25, 0.8), (50, 0.6), (100, 0.4)]


def location_score(job, contractor) -> float:
    if not (has_coordinates(job) and has_coordinates(contractor)):
        if job.city == contractor.city and job.state == contractor.state:
            return 1.0
        if job.state == contractor.state:
            return 0.6
        return 0.3

    distance = haversine_miles(job.latitude, job.longitude, contractor.latitude, contractor.longitude)
    for limit, score in DISTANCE_BANDS:
        if distance <= limit:
            return score
    return 0.2


# ─── SKILLS ──────────────────────────────────────────────────────────────────

RELATED_SKILLS: dict[str, list[str]] = {
    "TREE_REMOVAL":           ["tree cutting", "tree service", "emergency response"],
    "TREE_PRUNING":           ["tree trimming", "tree health", "arborist"],
    "STUMP_GRINDING":         ["stump removal", "tree service"],
    "EMERGENCY_RESPONSE":     ["storm cleanup", "tree removal", "emergency"],
    "STORM_CLEANUP":          ["emergency response", "tree removal", "debris removal"],
    "TREE_PLANTING":          ["landscaping", "tree service", "arborist"],
    "TREE_HEALTH_ASSESSMENT": ["arborist", "tree health", "consultation"],
    "CRANE_SERVICE":          ["heavy lifting", "tree removal", "equipment operation"],
    "LOT_CLEARING":           ["land clearing", "forestry", "tree removal"],
    "COMMERCIAL_MAINTENANCE": ["tree service", "landscaping", "maintenance"],
}
DEFAULT_RELATED_SKILLS = ["tree service"]
GENERAL_SKILL_KEYWORDS = ("tree", "arborist", "forestry")


def related_skills(job_type: str) -> list[str]:
    return RELATED_SKILLS.get(job_type, DEFAULT_RELATED_SKILLS)


def contractor_skills(contractor) -> list[str]:
    """Individual specializations, falling back to company service types."""
    return [s.lower() for s in (contractor.specializations or contractor.service_types or [])]


def skill_score(job, contractor) -> float:
    skills = contractor_skills(contractor)
    wanted = (job.job_type or "").lower().replace("_", " ")

    if wanted and any(wanted in s for s in skills):
        return 1.0

    related = related_skills(job.job_type)
    if any(r in s for s in skills for r in related):
        return 0.7

    if any(k in s for s in skills for k in GENERAL_SKILL_KEYWORDS):
        return 0.5
    return 0.2


# ─── AVAILABILITY ────────────────────────────────────────────────────────────

def recent(items: Iterable, now: datetime, days: int) -> list:
    cutoff = now - timedelta(days=days)
    return [i for i in items if i.created_at is not None and i.created_at >= cutoff]


def availability_score(bids: Iterable, now: Optional[datetime] = None) -> float:
    """Fewer bids in the last week means more free capacity."""
    now = now or datetime.utcnow()
    count = len(recent(bids, now, 7))
    if count == 0:
        return 1.0
    if count <= 2:
        return 0.8
    if count <= 5:
        return 0.6
    if count <= 10:
        return 0.4
    return 0.2


# ─── PRICE ───────────────────────────────────────────────────────────────────

ESTIMATED_JOB_HOURS = 8
PRICE_RATIO_BANDS = [(0.8, 1.0), (0.9, 0.9), (1.0, 0.8), (1.1, 0.6), (1.2, 0.4)]


def market_price(accepted_amounts: Iterable[float]) -> Optional[float]:
    """Average accepted bid for comparable jobs, or None without history."""
    amounts = [float(a) for a in accepted_amounts]
    if not amounts:
        return None
    return sum(amounts) / len(amounts)


def contractor_rate(contractor, now: Optional[datetime] = None) -> Optional[float]:
    """Day rate from hourly rate, else the mean of the last 30 days of bids."""
    if contractor.hourly_rate:
        return float(contractor.hourly_rate) * ESTIMATED_JOB_HOURS

    now = now or datetime.utcnow()
    bids = recent(contractor.bids or [], now, 30)
    if bids:
        return sum(float(b.amount) for b in bids) / len(bids)
    return None


def price_score(market: Optional[float], rate: Optional[float]) -> float:
    if not market or not rate:
        return 0.5
    ratio = rate / market
    for limit, score in PRICE_RATIO_BANDS:
        if ratio <= limit:
            return score
    return 0.2


# ─── BIDDING ─────────────────────────────────────────────────────────────────

BASE_PRICES: dict[str, float] = {
    "TREE_REMOVAL": 1500,
    "TREE_PRUNING": 800,
    "STUMP_GRINDING": 400,
    "EMERGENCY_RESPONSE": 2500,
    "STORM_CLEANUP": 2000,
    "TREE_PLANTING": 600,
    "TREE_HEALTH_ASSESSMENT": 300,
    "CRANE_SERVICE": 3000,
    "LOT_CLEARING": 2500,
    "COMMERCIAL_MAINTENANCE": 1200,
}
DEFAULT_BASE_PRICE = 1000

URGENCY_PREMIUM = {"EMERGENCY": 0.5, "URGENT": 0.3, "WITHIN_DAYS": 0.1}
DEFAULT_RATING = 4.0
AVERAGE_COMPETITORS = 8


def estimate_job_value(job) -> float:
    base = BASE_PRICES.get(job.job_type, DEFAULT_BASE_PRICE)
    if job.budget_max:
        base = min(base, float(job.budget_max))
    if job.budget_min:
        base = max(base, float(job.budget_min))
    return base


def contractor_rating(reviews: Iterable) -> float:
    ratings = [r.rating for r in reviews]
    if not ratings:
        return DEFAULT_RATING
    return sum(ratings) / len(ratings)


def suggested_bid(job, rate: Optional[float], rating: float = DEFAULT_RATING) -> int:
    base = estimate_job_value(job)
    if rate:
        return round((base + rate) / 2)

    multiplier = 1.0 + URGENCY_PREMIUM.get(job.urgency, 0)
    if rating >= 4.5:
        multiplier += 0.1
    elif rating <= 3.0:
        multiplier -= 0.1
    return round(base * multiplier)


def win_probability(match: float, price: float, competitors: int = AVERAGE_COMPETITORS) -> int:
    """Percent chance of winning, discounted for market competition."""
    base = (match * 0.7 + price * 0.3) * 100
    competition = max(0.5, 1 - competitors * 0.05)
    return round(base * competition)


def match_reasons(match: dict) -> list[str]:
    reasons = [
        label
        for label, key in (
            ("Location", "location_score"),
            ("Skills", "skill_score"),
            ("Availability", "availability_score"),
            ("Pricing", "price_score"),
        )
        if match[key] >= 0.8
    ]
    return reasons or ["General Match"]


# ─── ELIGIBILITY ─────────────────────────────────────────────────────────────

DEFAULT_SERVICE_RADIUS = 50


def within_service_area(job, contractor) -> bool:
    """Same city, or same state and within the contractor's service radius."""
    if not (job.city and job.state):
        return True
    if job.city == contractor.city and job.state == contractor.state:
        return True
    if job.state != contractor.state:
        return False
    radius = contractor.service_radius or DEFAULT_SERVICE_RADIUS
    return travel_distance(job, contractor) <= radius


def meets_certification_requirements(job, contractor) -> bool:
    required = job.required_certifications or []
    if not required:
        return True
    held = [s.lower() for s in (contractor.specializations or [])]
    return any(req.lower() in cert for req in required for cert in held)


def contractor_experience(contractor, now: Optional[datetime] = None) -> int:
    if contractor.years_experience:
        return contractor.years_experience
    if contractor.founded_year:
        return (now or datetime.utcnow()).year - contractor.founded_year
    return 0


def meets_experience_requirements(job, contractor, now: Optional[datetime] = None) -> bool:
    if not job.min_experience_years:
        return True
    return contractor_experience(contractor, now) >= job.min_experience_years


def is_eligible(job, contractor, now: Optional[datetime] = None) -> bool:
    return (
        within_service_area(job, contractor)
        and meets_certification_requirements(job, contractor)
        and meets_experience_requirements(job, contractor, now)
    )


# ─── MATCHING ────────────────────────────────────────────────────────────────

def score_contractor(
    job,
    contractor,
    market: Optional[float] = None,
    now: Optional[datetime] = None,
    competitor_count: int = 0,
) -> dict:
    """Score one contractor against a job.

    Returns a dict with the factor scores, the weighted match score
    (rounded to two places), suggested bid, win probability and travel
    distance.  ``contractor`` must carry its ``bids`` and ``reviews``.
    """
    now = now or datetime.utcnow()
    loc = location_score(job, contractor)
    skill = skill_score(job, contractor)
    avail = availability_score(contractor.bids or [], now)
    rate = contractor_rate(contractor, now)
    price = price_score(market, rate)

    match = calculate_job_match_score(loc, skill, avail, price)
    result = {
        "contractor_id": contractor.id,
        "match_score": round(match, 2),
        "location_score": loc,
        "skill_score": skill,
        "availability_score": avail,
        "price_score": price,
        "suggested_bid": suggested_bid(job, rate, contractor_rating(contractor.reviews or [])),
        "win_probability": win_probability(match, price),
        "travel_distance": travel_distance(job, contractor),
        "competitor_count": competitor_count,
    }
    result["match_reasons"] = match_reasons(result)
    return result


def rank_matches(matches: list[dict], limit: Optional[int] = None) -> list[dict]:
    ranked = sorted(matches, key=lambda m: m["match_score"], reverse=True)
    return ranked[:limit] if limit is not None else ranked


def match_revenue_projection(matches: list[dict], commission_rate: float = 0.07) -> dict:
    """Expected platform commission across a set of candidate matches."""
    if not matches:
        return {
            "average_bid_amount": 0,
            "average_win_probability": 0,
            "commission": 0,
            "commission_rate": commission_rate,
        }
    avg_win = sum(m["win_probability"] for m in matches) / len(matches)
    avg_bid = sum(m["suggested_bid"] for m in matches) / len(matches)
    return {
        "average_bid_amount": round(avg_bid),
        "average_win_probability": round(avg_win),
        "commission": round(avg_bid * (avg_win / 100) * commission_rate),
        "commission_rate": commission_rate,
    }
