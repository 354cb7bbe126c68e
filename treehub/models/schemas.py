"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


# ─── AGENTS ──────────────────────────────────────────────────────────────────

class AgentOut(BaseModel):
    id: int
    name: str
    agent_type: str
    status: str
    description: str = ""
    config: dict = {}
    total_executions: int = 0
    successful_executions: int = 0
    error_count: int = 0
    total_revenue: float = 0
    leads_generated: int = 0
    jobs_matched: int = 0
    avg_response_time: float = 0
    last_execution: Optional[datetime] = None

    class Config:
        from_attributes = True

class AgentExecuteRequest(BaseModel):
    agent_id: Optional[int] = None
    agent_type: Optional[str] = None
    input_data: dict = {}
    triggered_by: str = "manual"

class AgentResultOut(BaseModel):
    success: bool
    output_data: dict = {}
    error_message: Optional[str] = None
    processing_time: float = 0
    revenue_generated: float = 0
    leads_generated: int = 0
    jobs_matched: int = 0

    class Config:
        from_attributes = True

class AgentInitializeResponse(BaseModel):
    created: int
    registered: int


# ─── WEATHER ─────────────────────────────────────────────────────────────────

class WeatherReadingOut(BaseModel):
    id: int
    city: str
    state: str
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    is_storm: bool = False
    storm_type: Optional[str] = None
    severity: Optional[str] = None
    alert_level: Optional[str] = None
    recorded_at: datetime

    class Config:
        from_attributes = True

class StormEventOut(BaseModel):
    id: int
    name: str
    storm_type: str
    severity: str
    alert_level: Optional[str] = None
    city: str
    state: str
    affected_cities: list = []
    affected_states: list = []
    max_wind_speed: Optional[float] = None
    impact_radius: Optional[int] = None
    duration_hours: Optional[int] = None
    predicted_damage: Optional[str] = None
    service_demand: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str

    class Config:
        from_attributes = True

class MonitorLogOut(BaseModel):
    id: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    cities_checked: int = 0
    readings_stored: int = 0
    storms_detected: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True

class MonitorTriggerResponse(BaseModel):
    log: MonitorLogOut
    storm_responses: int


# ─── MATCHING ────────────────────────────────────────────────────────────────

class JobMatchOut(BaseModel):
    id: int
    job_id: int
    professional_id: int
    match_score: float
    location_score: float
    skill_score: float
    availability_score: float
    price_score: float
    suggested_bid: Optional[float] = None
    win_probability: int
    competitor_count: int
    average_market_price: float
    travel_distance: float
    match_reasons: list = []
    contractor_notified: bool

    class Config:
        from_attributes = True


# ─── TIERS ───────────────────────────────────────────────────────────────────

class TierStatusOut(BaseModel):
    id: int
    professional_id: int
    current_tier: str
    previous_tier: Optional[str] = None
    status: str
    monthly_jobs: int = 0
    monthly_revenue: float = 0
    average_rating: float = 0
    complaint_count: int = 0
    months_in_tier: int = 0
    points: int = 0
    badges: list = []
    is_eligible_for_promotion: bool = False
    next_tier: Optional[str] = None
    territory_protection: bool = False
    bonus_percentage: float = 0
    priority_alerts: bool = False
    advanced_analytics: bool = False
    promoted_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProfessionalRequest(BaseModel):
    professional_id: int


# ─── TERRITORIES ─────────────────────────────────────────────────────────────

class TerritoryCreate(BaseModel):
    name: str
    territory_type: str = "ZIP_CODE"
    zip_code: Optional[str] = None
    city: str = ""
    county: str = ""
    state: str = ""
    population: Optional[int] = None
    households: Optional[int] = None
    median_income: Optional[float] = None
    tree_canopy: Optional[float] = None

class TerritoryOut(BaseModel):
    id: int
    name: str
    territory_type: str
    zip_code: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    population: Optional[int] = None
    households: Optional[int] = None
    median_income: Optional[float] = None
    tree_canopy: Optional[float] = None
    opportunity_score: Optional[int] = None
    status: str
    is_protected: bool = False
    protected_by_id: Optional[int] = None
    exclusive_until: Optional[datetime] = None
    monthly_fee: Optional[float] = None
    total_jobs: int = 0
    total_revenue: float = 0
    market_penetration: float = 0

    class Config:
        from_attributes = True

class ProtectTerritoryRequest(BaseModel):
    territory_id: int
    professional_id: int
    exclusivity_fee: Optional[float] = None

class AssignTerritoryRequest(BaseModel):
    territory_id: int
    professional_id: int
    assignment_type: str = "PRIMARY"
    priority: int = 1

class TerritoryAssignmentOut(BaseModel):
    id: int
    territory_id: int
    professional_id: int
    assignment_type: str
    priority: int

    class Config:
        from_attributes = True


# ─── PARTNERSHIPS ────────────────────────────────────────────────────────────

class PartnershipCreate(BaseModel):
    name: str
    partner_type: str
    status: str = "PROSPECT"
    contact_email: str = ""
    revenue_share: Optional[float] = None
    referral_fee: Optional[float] = None
    service_areas: list = []
    service_types: list = []
    strategic_importance: str = "Medium"

class PartnershipOut(BaseModel):
    id: int
    name: str
    partner_type: str
    status: str
    contact_email: Optional[str] = None
    revenue_share: Optional[float] = None
    referral_fee: Optional[float] = None
    service_areas: list = []
    service_types: list = []
    strategic_importance: Optional[str] = None
    relationship_score: int = 0
    total_leads: int = 0
    total_revenue: float = 0
    cost_savings: float = 0

    class Config:
        from_attributes = True

class ActivityCreate(BaseModel):
    activity_type: str
    description: str = ""
    leads_generated: int = 0
    revenue_impact: float = 0
    cost_savings: float = 0

class CustomerInfo(BaseModel):
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

class InsuranceReferralRequest(BaseModel):
    insurance_company: str
    claim_number: str
    customer: CustomerInfo
    estimated_cost: float = Field(gt=0)


# ─── SUBSCRIPTIONS ───────────────────────────────────────────────────────────

class SubscriptionCreate(BaseModel):
    professional_id: int
    tier: str = Field(pattern="^(BASIC|PREMIUM|ENTERPRISE)$")
    is_annual: bool = False

class SubscriptionOut(BaseModel):
    id: int
    professional_id: int
    tier: str
    status: str
    monthly_price: float = 0
    annual_price: float = 0
    features: dict = {}
    monthly_lead_limit: int = 0
    monthly_job_matches: int = 0
    weather_api_calls: int = 0
    trial_ends_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ─── REVENUE ─────────────────────────────────────────────────────────────────

class LeadOut(BaseModel):
    id: int
    source: str
    service_type: str
    status: str
    urgency: str
    customer_name: str
    city: str
    state: str
    estimated_value: float
    commission: float
    storm_event_id: Optional[int] = None
    partnership_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

class LeadConversionRequest(BaseModel):
    lead_id: int
    job_value: float = Field(gt=0)

class JobCommissionRequest(BaseModel):
    job_id: int

class EquipmentCommissionRequest(BaseModel):
    transaction_id: int
