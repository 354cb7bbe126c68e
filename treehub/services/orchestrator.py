"""Scheduled jobs: weather sweep with storm response, and the monthly tier review."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from treehub.config import get_settings
from treehub.models.database import MonitorLog, get_session_factory
from treehub.services.agents import agent_manager
from treehub.services.tiers import monthly_tier_review
from treehub.services.weather import HIGH_WIND_MPH, run_weather_sweep

logger = logging.getLogger("treehub.orchestrator")


def storm_threshold() -> float:
    """Threshold from the first registered weather monitor agent, if any."""
    for agent in agent_manager.registered():
        if agent.agent_type == "WEATHER_MONITOR":
            return agent.config.get("storm_detection_threshold", HIGH_WIND_MPH)
    return HIGH_WIND_MPH


async def sweep_and_respond(session: AsyncSession) -> tuple[MonitorLog, int]:
    """Run the weather sweep, then every storm response agent on each new storm.

    Returns the sweep log and the number of storm responses that succeeded.
    """
    log, storms = await run_weather_sweep(session, storm_threshold())

    responded = 0
    if get_settings().enable_ai_agents:
        for storm_id in [s.id for s in storms]:
            results = await agent_manager.execute_agents_by_type(
                session, "STORM_RESPONSE", {"storm_event_id": storm_id}, triggered_by="weather_monitor",
            )
            responded += sum(1 for r in results if r.success)
    return log, responded


async def scheduled_weather_job():
    """Called by APScheduler on the sweep interval."""
    settings = get_settings()
    if not settings.enable_weather_monitoring:
        return

    logger.info("=== Scheduled weather sweep starting ===")
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            if settings.enable_ai_agents and not agent_manager.registered():
                await agent_manager.initialize_agents(session)
            log, responded = await sweep_and_respond(session)
            await session.commit()
            logger.info(
                f"=== Weather sweep complete: {log.readings_stored} readings, "
                f"{log.storms_detected} storms, {responded} responses ==="
            )
        except Exception as e:
            await session.rollback()
            logger.error(f"=== Scheduled weather sweep failed: {e} ===")


async def scheduled_tier_review_job():
    """Called by APScheduler once a month."""
    if not get_settings().enable_market_conquest:
        return

    logger.info("=== Monthly tier review starting ===")
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            summary = await monthly_tier_review(session)
            await session.commit()
            logger.info(f"=== Tier review complete: {summary['reviewed']} reviewed ===")
        except Exception as e:
            await session.rollback()
            logger.error(f"=== Monthly tier review failed: {e} ===")
