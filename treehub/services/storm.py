"""Storm response planning and synthetic lead generation.

Given a storm event, sizes the lead volume by severity, fabricates
homeowner leads for each affected city, plans crew alerts and equipment
staging, and projects the revenue the response should produce.

All randomness flows through an explicit ``random.Random`` so a seeded
generator reproduces the same leads.
"""

import math
import random
from datetime import datetime, timedelta
from typing import Optional

from treehub.services.revenue import calculate_lead_commission

# ─── SEVERITY TABLES ─────────────────────────────────────────────────────────

SEVERITIES = ("Extreme", "Severe", "Major", "Moderate", "Minor")
CRITICAL_SEVERITIES = ("Extreme", "Severe")

LEADS_PER_CITY = {"Extreme": 50, "Severe": 30, "Major": 20, "Moderate": 10, "Minor": 5}
VALUE_MULTIPLIER = {"Extreme": 2.5, "Severe": 2.0, "Major": 1.5, "Moderate": 1.2, "Minor": 1.0}
JOB_VOLUME_MULTIPLIER = {"Extreme": 5, "Severe": 3, "Major": 2, "Moderate": 1.5, "Minor": 1}
CONVERSION_RATE = {"Extreme": 0.8, "Severe": 0.7, "Major": 0.6, "Moderate": 0.5, "Minor": 0.4}
EFFECTIVENESS_BONUS = {"Extreme": 20, "Severe": 15, "Major": 10, "Moderate": 5, "Minor": 0}

SERVICE_BASE_VALUES = {
    "Emergency": 2500,
    "Storm_Cleanup": 1800,
    "Tree_Removal": 1200,
    "Debris_Removal": 800,
}
VALUE_VARIANCE = 0.3
STORM_COMMISSION_RATE = 0.25
EXPECTED_LEADS_PER_CITY = 10
RESPONSE_DEADLINE_HOURS = 4

# ─── SYNTHETIC CONTACTS ──────────────────────────────────────────────────────

FIRST_NAMES = ["John", "Mary", "Robert", "Patricia", "Michael", "Jennifer", "William", "Linda", "David", "Elizabeth"]
LAST_NAMES = ["Smith", "Johnson", "Brown", "Taylor", "Miller", "Wilson", "Moore", "Anderson", "Jackson", "White"]
STREET_NAMES = ["Oak", "Pine", "Maple", "Cedar", "Elm", "Birch", "Willow", "Cherry", "Walnut", "Hickory"]
STREET_TYPES = ["St", "Ave", "Dr", "Ln", "Ct", "Way", "Blvd"]
EMAIL_DOMAINS = ["gmail.com", "yahoo.com", "outlook.com", "hotmail.com"]


def fake_name(rng: random.Random) -> str:
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def fake_email(rng: random.Random) -> str:
    handle = fake_name(rng).lower().replace(" ", ".")
    return f"{handle}{rng.randrange(999)}@{rng.choice(EMAIL_DOMAINS)}"


def fake_phone(rng: random.Random) -> str:
    return f"{rng.randint(100, 999)}-{rng.randint(100, 999)}-{rng.randint(1000, 9999)}"


def fake_address(rng: random.Random) -> str:
    return f"{rng.randint(1, 9999)} {rng.choice(STREET_NAMES)} {rng.choice(STREET_TYPES)}"


def fake_zip(rng: random.Random) -> str:
    return str(rng.randint(10000, 99999))


# ─── LEADS ───────────────────────────────────────────────────────────────────

def leads_per_city(severity: str) -> int:
    return LEADS_PER_CITY.get(severity, 5)


def estimate_lead_value(severity: str, service_type: str, rng: random.Random) -> int:
    base = SERVICE_BASE_VALUES.get(service_type, 1000)
    multiplier = VALUE_MULTIPLIER.get(severity, 1.0)
    noise = 1 + (rng.random() - 0.5) * 2 * VALUE_VARIANCE
    return round(base * multiplier * noise)


def lead_urgency(severity: str) -> str:
    return "Immediate" if severity in CRITICAL_SEVERITIES else "Within_Week"


def city_entries(event) -> list[tuple[str, str]]:
    """(city, state) pairs for a storm, accepting dict or bare-name entries."""
    default_state = (event.affected_states or [event.state or "Unknown"])[0]
    pairs = []
    for entry in event.affected_cities or []:
        if isinstance(entry, dict):
            pairs.append((entry.get("city", ""), entry.get("state") or default_state))
        else:
            pairs.append((str(entry), default_state))
    return pairs


def generate_storm_leads(
    event,
    rng: Optional[random.Random] = None,
    max_leads: Optional[int] = None,
) -> list[dict]:
    """Fabricate homeowner leads for every affected city.

    Each lead is a dict of Lead column values.  ``max_leads`` caps the
    total across all cities.
    """
    rng = rng or random.Random()
    per_city = leads_per_city(event.severity)
    services = list(SERVICE_BASE_VALUES)
    leads = []

    for city, state in city_entries(event):
        for _ in range(per_city):
            if max_leads is not None and len(leads) >= max_leads:
                return leads
            service = rng.choice(services)
            value = estimate_lead_value(event.severity, service, rng)
            leads.append({
                "source": "Storm_Response",
                "service_type": service,
                "status": "New",
                "urgency": lead_urgency(event.severity),
                "customer_name": fake_name(rng),
                "email": fake_email(rng),
                "phone": fake_phone(rng),
                "address": fake_address(rng),
                "city": city,
                "state": state,
                "zip_code": fake_zip(rng),
                "description": f"{event.storm_type} damage ({event.severity})",
                "estimated_value": value,
                "commission": calculate_lead_commission(value, STORM_COMMISSION_RATE),
            })
    return leads


# ─── CREWS & EQUIPMENT ───────────────────────────────────────────────────────

def alert_priority(severity: str) -> str:
    return "CRITICAL" if severity in CRITICAL_SEVERITIES else "HIGH"


def estimated_job_volume(event) -> int:
    base = len(event.affected_cities or []) * 10
    return round(base * JOB_VOLUME_MULTIPLIER.get(event.severity, 1))


def storm_instructions(event) -> str:
    kind = (event.storm_type or "storm").lower()
    lines = [
        f"Ensure all safety equipment is ready and crews are briefed on {kind} response protocols.",
        "Prioritize emergency calls involving power lines, blocked roads, and property damage.",
        "Stage equipment in central locations for rapid deployment.",
        "Coordinate with local emergency services and utility companies.",
    ]
    if (event.max_wind_speed or 0) > 40:
        lines.append("High winds expected - exercise extreme caution during operations.")
    return " ".join(lines)


def equipment_needs(event) -> list[dict]:
    n = len(event.affected_cities or [])
    needs = [
        {"type": "Chainsaw", "quantity": math.ceil(n * 2), "priority": "High",
         "reason": "Tree cutting and debris removal"},
        {"type": "Chipper", "quantity": math.ceil(n * 0.5), "priority": "Medium",
         "reason": "On-site debris processing"},
    ]
    if event.severity in CRITICAL_SEVERITIES:
        needs += [
            {"type": "Crane", "quantity": math.ceil(n * 0.3), "priority": "High",
             "reason": "Large tree removal and emergency lifting"},
            {"type": "Bucket Truck", "quantity": math.ceil(n * 0.8), "priority": "High",
             "reason": "Power line clearance and elevated work"},
        ]
    for need in needs:
        need["staging_location"] = "Central depot"
    return needs


def build_alert(event, crew_count: int, now: Optional[datetime] = None) -> dict:
    """Column values for the EmergencyAlert sent to crews in the storm area."""
    now = now or datetime.utcnow()
    return {
        "storm_event_id": event.id,
        "alert_type": "STORM_WARNING",
        "priority": alert_priority(event.severity),
        "title": f"{event.storm_type} Alert - {event.severity} Severity",
        "message": (
            f"A {event.severity.lower()} {(event.storm_type or 'storm').lower()} is affecting your "
            "service area. High tree service demand expected. Position your crews and "
            "equipment for rapid response."
        ),
        "instructions": storm_instructions(event),
        "affected_states": list(event.affected_states or []),
        "wind_speed": round(event.max_wind_speed or 0),
        "crews_alerted": crew_count,
        "estimated_jobs": estimated_job_volume(event),
        "equipment_needs": equipment_needs(event),
        "response_deadline": now + timedelta(hours=RESPONSE_DEADLINE_HOURS),
    }


# ─── OUTCOME ─────────────────────────────────────────────────────────────────

def revenue_projection(leads: list[dict], severity: str) -> dict:
    total = sum(lead["estimated_value"] for lead in leads)
    rate = CONVERSION_RATE.get(severity, 0.5)
    return {
        "estimated": round(total * rate * STORM_COMMISSION_RATE),
        "total_lead_value": total,
        "conversion_rate": rate,
        "commission_rate": STORM_COMMISSION_RATE,
        "leads": len(leads),
    }


def effectiveness_score(event, leads_generated: int) -> int:
    expected = len(event.affected_cities or []) * EXPECTED_LEADS_PER_CITY
    efficiency = min(leads_generated / expected, 1.0) if expected else 0
    return round(efficiency * 80 + EFFECTIVENESS_BONUS.get(event.severity, 0))
