"""SQLAlchemy models and async database engine."""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey,
    Index, UniqueConstraint, JSON,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from treehub.config import get_settings

Base = declarative_base()

# ─── MARKETPLACE ─────────────────────────────────────────────────────────────

class Professional(Base):
    """A tree-care professional, company, or homeowner account."""
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), default="")
    company_name = Column(String(255), default="")
    phone = Column(String(50), default="")
    role = Column(String(20), default="PROFESSIONAL")   # PROFESSIONAL, COMPANY, HOMEOWNER
    status = Column(String(20), default="ACTIVE")

    city = Column(String(100), default="")
    state = Column(String(10), default="")
    zip_code = Column(String(10), default="")
    county = Column(String(100), default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    service_radius = Column(Integer, default=50)         # miles

    years_experience = Column(Integer, nullable=True)
    founded_year = Column(Integer, nullable=True)        # companies only
    specializations = Column(JSON, default=list)         # e.g. ["Tree Removal", "ISA Certified Arborist"]
    service_types = Column(JSON, default=list)           # company service lines
    hourly_rate = Column(Float, nullable=True)
    emergency_alerts = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    bids = relationship("Bid", back_populates="professional", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="professional")
    tier_status = relationship("TierStatus", back_populates="professional", uselist=False)


class Job(Base):
    """A tree-care job posted by a property owner."""
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    job_type = Column(String(50), nullable=False)        # TREE_REMOVAL, STUMP_GRINDING, ...
    status = Column(String(20), default="OPEN")          # OPEN, ASSIGNED, COMPLETED, CANCELLED
    urgency = Column(String(20), default="FLEXIBLE")     # FLEXIBLE, WITHIN_WEEK, WITHIN_DAYS, URGENT, EMERGENCY

    city = Column(String(100), default="")
    state = Column(String(10), default="")
    zip_code = Column(String(10), default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    budget_min = Column(Float, nullable=True)
    budget_max = Column(Float, nullable=True)
    required_certifications = Column(JSON, default=list)
    min_experience_years = Column(Integer, nullable=True)

    assigned_professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    bids = relationship("Bid", back_populates="job", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="job", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="job", cascade="all, delete-orphan")
    assigned_professional = relationship("Professional")

    __table_args__ = (
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_type_location", "job_type", "city", "state"),
    )


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String(20), default="PENDING")       # PENDING, ACCEPTED, REJECTED
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="bids")
    professional = relationship("Professional", back_populates="bids")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    rating = Column(Integer, nullable=False)             # 1-5
    comment = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="reviews")
    professional = relationship("Professional", back_populates="reviews")


class Transaction(Base):
    """Payment recorded against a job or an equipment listing."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=True)
    transaction_type = Column(String(30), default="JOB_PAYMENT")  # JOB_PAYMENT, EQUIPMENT_RENTAL, EQUIPMENT_SALE
    status = Column(String(20), default="COMPLETED")
    amount = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="transactions")
    equipment = relationship("Equipment", back_populates="transactions")


class JobMatch(Base):
    """A scored contractor candidate for a job."""
    __tablename__ = "job_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    match_score = Column(Float, default=0)               # 0-1
    location_score = Column(Float, default=0)            # 0-100
    skill_score = Column(Float, default=0)
    availability_score = Column(Float, default=0)
    price_score = Column(Float, default=0)
    suggested_bid = Column(Float, nullable=True)
    win_probability = Column(Integer, default=0)         # percent
    competitor_count = Column(Integer, default=0)
    average_market_price = Column(Float, default=0)
    travel_distance = Column(Float, default=999)
    match_reasons = Column(JSON, default=list)
    contractor_notified = Column(Boolean, default=False)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("job_id", "professional_id", name="uq_job_professional"),
    )


# ─── WEATHER & STORMS ────────────────────────────────────────────────────────

class WeatherReading(Base):
    __tablename__ = "weather_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    city = Column(String(100), nullable=False)
    state = Column(String(10), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    temperature = Column(Float, nullable=True)           # F
    humidity = Column(Float, nullable=True)
    pressure = Column(Float, nullable=True)
    wind_speed = Column(Float, default=0)                # mph
    wind_direction = Column(String(5), default="")
    condition = Column(String(50), default="")
    description = Column(String(255), default="")
    precipitation = Column(Float, default=0)             # mm, last hour
    visibility = Column(Float, nullable=True)            # km
    is_storm = Column(Boolean, default=False)
    storm_type = Column(String(50), nullable=True)
    severity = Column(String(20), default="Low")
    alert_level = Column(String(20), nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_weather_city_time", "city", "state", "recorded_at"),
    )


class StormEvent(Base):
    __tablename__ = "storm_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), default="")
    storm_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)        # Extreme, Severe, Major, Moderate, Minor
    alert_level = Column(String(20), default="Advisory")
    city = Column(String(100), default="")
    state = Column(String(10), default="")
    affected_cities = Column(JSON, default=list)         # [{"city": ..., "state": ...}]
    affected_states = Column(JSON, default=list)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    max_wind_speed = Column(Float, default=0)
    impact_radius = Column(Integer, default=10)          # miles
    duration_hours = Column(Integer, default=0)
    predicted_damage = Column(String(20), default="Low")
    service_demand = Column(String(20), default="Low")
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    status = Column(String(20), default="ACTIVE")        # ACTIVE, RESPONDED, EXPIRED
    created_at = Column(DateTime, default=datetime.utcnow)

    leads = relationship("Lead", back_populates="storm_event")

    __table_args__ = (
        UniqueConstraint("city", "state", "storm_type", "start_time", name="uq_storm_city_type_start"),
    )


class StormResponse(Base):
    __tablename__ = "storm_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    storm_event_id = Column(Integer, ForeignKey("storm_events.id"), nullable=False)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    leads_generated = Column(Integer, default=0)
    crews_alerted = Column(Integer, default=0)
    estimated_revenue = Column(Float, default=0)
    response_time_minutes = Column(Integer, default=15)
    effectiveness = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class EmergencyAlert(Base):
    __tablename__ = "emergency_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    storm_event_id = Column(Integer, ForeignKey("storm_events.id"), nullable=False)
    alert_type = Column(String(30), default="STORM_WARNING")
    priority = Column(String(20), default="HIGH")        # CRITICAL, HIGH
    title = Column(String(255), default="")
    message = Column(Text, default="")
    instructions = Column(Text, default="")
    affected_states = Column(JSON, default=list)
    wind_speed = Column(Integer, default=0)
    crews_alerted = Column(Integer, default=0)
    estimated_jobs = Column(Integer, default=0)
    equipment_needs = Column(JSON, default=list)
    response_deadline = Column(DateTime, nullable=True)
    status = Column(String(20), default="SENT")
    created_at = Column(DateTime, default=datetime.utcnow)


class MonitorLog(Base):
    """Record of one weather sweep."""
    __tablename__ = "monitor_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    finished_at = Column(DateTime, nullable=True)
    status = Column(String(20), default="running")       # running, success, error
    cities_checked = Column(Integer, default=0)
    readings_stored = Column(Integer, default=0)
    storms_detected = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)


# ─── LEADS & REVENUE ─────────────────────────────────────────────────────────

class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), default="SEO")           # Storm_Response, Weather_Alert, SEO, Referral, Insurance_Referral
    service_type = Column(String(50), default="Tree_Removal")
    status = Column(String(20), default="New")           # New, Contacted, Converted, Lost
    urgency = Column(String(20), default="Within_Week")
    customer_name = Column(String(255), default="")
    email = Column(String(255), default="")
    phone = Column(String(50), default="")
    address = Column(String(500), default="")
    city = Column(String(100), default="")
    state = Column(String(10), default="")
    zip_code = Column(String(10), default="")
    description = Column(Text, default="")
    estimated_value = Column(Float, default=0)
    commission = Column(Float, default=0)                # expected at creation, earned after conversion
    conversion_value = Column(Float, nullable=True)
    assigned_professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    storm_event_id = Column(Integer, ForeignKey("storm_events.id"), nullable=True)
    partnership_id = Column(Integer, ForeignKey("partnerships.id"), nullable=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    converted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    storm_event = relationship("StormEvent", back_populates="leads")

    __table_args__ = (
        Index("ix_leads_status", "status"),
    )


class RevenueRecord(Base):
    """A unit of platform revenue (commission, fee, or agent-generated)."""
    __tablename__ = "revenue_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), nullable=False)          # Lead_Generation, Job_Completion, Equipment_Transaction, Storm_Response
    category = Column(String(50), default="")            # Lead_Conversion, Job_Matching, Equipment_Intelligence, ...
    subcategory = Column(String(50), default="")
    revenue_type = Column(String(30), default="Commission")
    amount = Column(Float, default=0)                    # platform revenue
    gross_value = Column(Float, default=0)               # value of the underlying deal
    profit_margin = Column(Float, default=0)             # percent
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    agent = relationship("Agent")

    __table_args__ = (
        Index("ix_revenue_created", "created_at"),
    )


# ─── EQUIPMENT ───────────────────────────────────────────────────────────────

class Equipment(Base):
    """An equipment listing, either for sale or for rent."""
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False)        # CHAINSAWS, CHIPPERS, STUMP_GRINDERS, CRANES, BUCKET_TRUCKS, TRUCKS
    make = Column(String(100), default="")
    model = Column(String(100), default="")
    year = Column(Integer, nullable=True)
    condition = Column(String(20), default="GOOD")       # NEW, EXCELLENT, GOOD, FAIR, POOR
    listing_type = Column(String(10), default="SALE")    # SALE, RENT
    status = Column(String(20), default="ACTIVE")        # ACTIVE, SOLD, RENTED, INACTIVE

    price = Column(Float, nullable=True)                 # asking / sold price
    original_price = Column(Float, nullable=True)
    daily_rate = Column(Float, nullable=True)
    hours_used = Column(Float, default=0)
    views = Column(Integer, default=0)
    inquiries = Column(Integer, default=0)
    rental_count = Column(Integer, default=0)
    images = Column(JSON, default=list)
    delivery_available = Column(Boolean, default=False)

    listed_at = Column(DateTime, default=datetime.utcnow)
    sold_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    transactions = relationship("Transaction", back_populates="equipment")
    intelligence = relationship("EquipmentIntelligence", back_populates="equipment", uselist=False)


class EquipmentIntelligence(Base):
    __tablename__ = "equipment_intelligence"

    id = Column(Integer, primary_key=True, autoincrement=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), unique=True, nullable=False)
    maintenance_score = Column(Integer, default=100)
    next_maintenance = Column(DateTime, nullable=True)
    predicted_failures = Column(JSON, default=list)
    maintenance_cost = Column(Float, default=0)
    maintenance_urgency = Column(String(10), default="Low")
    market_value = Column(Float, default=0)
    demand_score = Column(Float, default=0)
    optimal_price = Column(Float, default=0)
    price_adjustment = Column(Float, default=0)          # percent
    utilization_rate = Column(Float, nullable=True)
    efficiency_score = Column(Float, nullable=True)
    downtime_hours = Column(Float, default=0)
    competitor_price = Column(Float, default=0)
    suggested_rental_price = Column(Float, nullable=True)
    peak_months = Column(JSON, default=list)
    recommendations = Column(JSON, default=list)
    projected_revenue = Column(Float, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    equipment = relationship("Equipment", back_populates="intelligence")


# ─── MARKET CONQUEST ─────────────────────────────────────────────────────────

class TierStatus(Base):
    __tablename__ = "tier_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), unique=True, nullable=False)
    current_tier = Column(String(20), default="BRONZE")
    previous_tier = Column(String(20), nullable=True)
    status = Column(String(20), default="ACTIVE")        # ACTIVE, PROMOTED

    monthly_jobs = Column(Integer, default=0)
    monthly_revenue = Column(Float, default=0)
    average_rating = Column(Float, default=0)
    complaint_count = Column(Integer, default=0)

    months_in_tier = Column(Integer, default=0)
    points = Column(Integer, default=0)
    badges = Column(JSON, default=list)
    is_eligible_for_promotion = Column(Boolean, default=False)
    next_tier = Column(String(20), nullable=True)

    territory_protection = Column(Boolean, default=False)
    bonus_percentage = Column(Float, default=0)
    priority_alerts = Column(Boolean, default=False)
    advanced_analytics = Column(Boolean, default=False)

    promoted_at = Column(DateTime, nullable=True)
    last_reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    professional = relationship("Professional", back_populates="tier_status")


class Territory(Base):
    """A zip-code level market unit that may be protected for one professional."""
    __tablename__ = "territories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    territory_type = Column(String(20), default="ZIP_CODE")   # ZIP_CODE, CITY, COUNTY
    zip_code = Column(String(10), nullable=True, index=True)
    city = Column(String(100), default="")
    county = Column(String(100), default="")
    state = Column(String(10), default="")
    population = Column(Integer, nullable=True)
    households = Column(Integer, nullable=True)
    median_income = Column(Float, nullable=True)
    tree_canopy = Column(Float, nullable=True)           # percent coverage
    opportunity_score = Column(Integer, default=0)

    status = Column(String(20), default="AVAILABLE")     # AVAILABLE, PROTECTED
    is_protected = Column(Boolean, default=False)
    protected_by_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    protection_start = Column(DateTime, nullable=True)
    exclusive_until = Column(DateTime, nullable=True)
    monthly_fee = Column(Float, nullable=True)

    total_jobs = Column(Integer, default=0)
    total_revenue = Column(Float, default=0)
    market_penetration = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    assignments = relationship("TerritoryAssignment", back_populates="territory", cascade="all, delete-orphan")


class TerritoryAssignment(Base):
    __tablename__ = "territory_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    territory_id = Column(Integer, ForeignKey("territories.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    assignment_type = Column(String(20), default="PRIMARY")
    priority = Column(Integer, default=1)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    territory = relationship("Territory", back_populates="assignments")
    professional = relationship("Professional")

    __table_args__ = (
        UniqueConstraint("territory_id", "professional_id", name="uq_territory_professional"),
    )


class Partnership(Base):
    __tablename__ = "partnerships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    partner_type = Column(String(30), nullable=False)    # INSURANCE_COMPANY, MUNICIPAL_CONTRACT, PROPERTY_MANAGEMENT, EQUIPMENT_SUPPLIER, FRANCHISE_PARTNER
    status = Column(String(20), default="PROSPECT")      # PROSPECT, ACTIVE, INACTIVE
    contact_email = Column(String(255), default="")
    revenue_share = Column(Float, default=0)             # percent of job value
    referral_fee = Column(Float, nullable=True)
    service_areas = Column(JSON, default=list)
    service_types = Column(JSON, default=list)
    strategic_importance = Column(String(20), default="Medium")
    relationship_score = Column(Integer, default=50)
    total_leads = Column(Integer, default=0)
    total_revenue = Column(Float, default=0)
    cost_savings = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    activities = relationship("PartnershipActivity", back_populates="partnership", cascade="all, delete-orphan")


class PartnershipActivity(Base):
    __tablename__ = "partnership_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    partnership_id = Column(Integer, ForeignKey("partnerships.id"), nullable=False)
    activity_type = Column(String(30), nullable=False)   # Lead_Share, Meeting, Joint_Marketing, ...
    description = Column(Text, default="")
    leads_generated = Column(Integer, default=0)
    revenue_impact = Column(Float, default=0)
    cost_savings = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    partnership = relationship("Partnership", back_populates="activities")


# ─── SUBSCRIPTIONS ───────────────────────────────────────────────────────────

class Subscription(Base):
    """A professional's AI plan: price, feature flags, and monthly limits."""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), unique=True, nullable=False)
    tier = Column(String(20), nullable=False)            # BASIC, PREMIUM, ENTERPRISE
    status = Column(String(20), default="TRIAL")         # TRIAL, ACTIVE, CANCELLED
    monthly_price = Column(Float, default=0)
    annual_price = Column(Float, default=0)
    features = Column(JSON, default=dict)

    monthly_lead_limit = Column(Integer, default=0)
    monthly_job_matches = Column(Integer, default=0)
    weather_api_calls = Column(Integer, default=0)

    trial_ends_at = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    professional = relationship("Professional")


# ─── AGENTS ──────────────────────────────────────────────────────────────────

class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    agent_type = Column(String(50), nullable=False)      # STORM_RESPONSE, JOB_MATCHING, EQUIPMENT_INTELLIGENCE, WEATHER_MONITOR
    status = Column(String(20), default="ACTIVE")
    description = Column(Text, default="")
    config = Column(JSON, default=dict)

    total_executions = Column(Integer, default=0)
    successful_executions = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    total_revenue = Column(Float, default=0)
    leads_generated = Column(Integer, default=0)
    jobs_matched = Column(Integer, default=0)
    avg_response_time = Column(Float, default=0)         # ms
    last_execution = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AgentLog(Base):
    __tablename__ = "agent_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False)
    execution_id = Column(String(64), nullable=False, index=True)
    action = Column(String(100), default="")
    input_data = Column(JSON, nullable=True)
    output_data = Column(JSON, nullable=True)
    success = Column(Boolean, default=True)
    error_message = Column(Text, nullable=True)
    processing_time = Column(Float, default=0)           # ms
    revenue_generated = Column(Float, default=0)
    leads_generated = Column(Integer, default=0)
    jobs_matched = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


# ─── DATABASE ENGINE ─────────────────────────────────────────────────────────

def get_engine():
    import os
    settings = get_settings()
    db_url = (
        os.environ.get("DATABASE_URL")
        or os.environ.get("POSTGRES_URL")
        or settings.database_url
    )
    # Hosted Postgres URLs need the asyncpg driver prefix for SQLAlchemy async.
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return create_async_engine(db_url, echo=settings.database_echo)


_engine = None
_session_factory = None


def get_session_factory():
    global _engine, _session_factory
    if _session_factory is None:
        _engine = get_engine()
        _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
    return _session_factory


async def init_db():
    """Create all tables."""
    get_session_factory()  # ensures _engine is initialized
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """FastAPI dependency for database sessions."""
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
