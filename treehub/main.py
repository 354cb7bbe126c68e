"""TreeHub Backend: FastAPI application with scheduled weather and tier jobs.

Starts the API server, registers the configured agents, and runs the
weather sweep and monthly tier review in the background.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from treehub.config import get_settings
from treehub.models.database import get_session_factory, init_db
from treehub.routers import (
    agents_router, partnerships_router, revenue_router,
    subscriptions_router, territories_router, tiers_router, weather_router,
)
from treehub.services.agents import agent_manager
from treehub.services.orchestrator import scheduled_tier_review_job, scheduled_weather_job

# ─── LOGGING ─────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("treehub")

# ─── SCHEDULER ───────────────────────────────────────────────────────────────

scheduler = AsyncIOScheduler()


async def load_agents():
    session_factory = get_session_factory()
    async with session_factory() as session:
        count = await agent_manager.initialize_agents(session)
    logger.info(f"{count} agents registered")


# ─── APP LIFECYCLE ───────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings = get_settings()

    logger.info("Initializing database...")
    await init_db()
    logger.info("Database ready")

    if settings.enable_ai_agents:
        await load_agents()

    if settings.enable_weather_monitoring:
        scheduler.add_job(
            scheduled_weather_job,
            trigger=IntervalTrigger(minutes=settings.weather_sweep_minutes),
            id="weather_sweep",
            name="Weather sweep and storm response",
            replace_existing=True,
        )
    if settings.enable_market_conquest:
        scheduler.add_job(
            scheduled_tier_review_job,
            trigger=CronTrigger(day=settings.tier_review_day, hour=2),
            id="tier_review",
            name="Monthly tier review",
            replace_existing=True,
        )
    scheduler.start()
    logger.info(f"Scheduler started, weather sweep every {settings.weather_sweep_minutes} minutes")

    yield

    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


# ─── APP ─────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="TreeHub API",
    description=(
        "Tree-care marketplace intelligence API. "
        "Matches contractors to jobs, responds to storms with leads and crew alerts, "
        "and runs the tier, territory and partnership programs."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agents_router, prefix="/api/v1")
app.include_router(weather_router, prefix="/api/v1")
app.include_router(tiers_router, prefix="/api/v1")
app.include_router(territories_router, prefix="/api/v1")
app.include_router(partnerships_router, prefix="/api/v1")
app.include_router(revenue_router, prefix="/api/v1")
app.include_router(subscriptions_router, prefix="/api/v1")


# ─── HEALTH CHECK ────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    s = get_settings()
    db = s.database_url
    return {
        "status": "ok",
        "service": "treehub-api",
        "version": "1.0.0",
        "db_type": "postgres" if "postgres" in db else "sqlite",
        "agents_registered": len(agent_manager.registered()),
        "weather_monitoring": s.enable_weather_monitoring,
    }


@app.get("/")
async def root():
    return {
        "name": "TreeHub API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
