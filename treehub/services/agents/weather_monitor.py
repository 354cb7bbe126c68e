"""Weather monitor agent: runs the weather sweep with the agent's storm threshold."""

from sqlalchemy.ext.asyncio import AsyncSession

from treehub.services.agents.base import AgentContext, AgentResult, BaseAgent
from treehub.services.weather import HIGH_WIND_MPH, run_weather_sweep


class WeatherMonitorAgent(BaseAgent):
    agent_type = "WEATHER_MONITOR"

    async def execute(self, session: AsyncSession, context: AgentContext) -> AgentResult:
        threshold = self.config.get("storm_detection_threshold", HIGH_WIND_MPH)
        log, storms = await run_weather_sweep(session, threshold)
        if log.status == "error" and not log.readings_stored:
            # Returned rather than raised so the error MonitorLog is kept
            return AgentResult(
                success=False,
                error_message=log.error_message or "Weather sweep failed",
                output_data={"monitor_log_id": log.id},
            )

        return AgentResult(
            success=True,
            output_data={
                "monitor_log_id": log.id,
                "cities_checked": log.cities_checked,
                "readings_stored": log.readings_stored,
                "new_storm_ids": [s.id for s in storms],
            },
        )
