"""Weather endpoints: current readings, active storms, and manual sweeps."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from treehub.config import get_settings
from treehub.models.database import get_db
from treehub.models.schemas import MonitorTriggerResponse, StormEventOut, WeatherReadingOut
from treehub.services.agents import agent_manager
from treehub.services.orchestrator import sweep_and_respond
from treehub.services.weather import active_storms, latest_readings

router = APIRouter(prefix="/weather", tags=["weather"])


@router.get("/current", response_model=list[WeatherReadingOut])
async def current_weather(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await latest_readings(db, limit)


@router.get("/storms", response_model=list[StormEventOut])
async def storms(
    state: Optional[str] = Query(None, description="Two-letter state code"),
    db: AsyncSession = Depends(get_db),
):
    return await active_storms(db, state)


@router.post("/monitor", response_model=MonitorTriggerResponse)
async def trigger_monitor(db: AsyncSession = Depends(get_db)):
    """Run a weather sweep now and respond to any new storms."""
    settings = get_settings()
    if not settings.enable_weather_monitoring:
        raise HTTPException(status_code=400, detail="Weather monitoring is disabled")

    if settings.enable_ai_agents and not agent_manager.registered():
        await agent_manager.initialize_agents(db)

    log, responded = await sweep_and_respond(db)
    return {"log": log, "storm_responses": responded}
