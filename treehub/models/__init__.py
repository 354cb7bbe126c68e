from treehub.models.database import (
    Base, Professional, Job, Bid, Review, Transaction, JobMatch,
    WeatherReading, StormEvent, StormResponse, EmergencyAlert, MonitorLog,
    Lead, RevenueRecord, Equipment, EquipmentIntelligence,
    TierStatus, Territory, TerritoryAssignment, Partnership, PartnershipActivity, Subscription,
    Agent, AgentLog,
    get_engine, get_session_factory, get_db, init_db,
)
