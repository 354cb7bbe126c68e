"""Agent registry: builds agents from their database rows and dispatches runs."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Agent
from treehub.services.agents.base import AgentContext, AgentResult, BaseAgent, generate_execution_id
from treehub.services.agents.equipment_intelligence import EquipmentIntelligenceAgent
from treehub.services.agents.job_matching import JobMatchingAgent
from treehub.services.agents.storm_response import StormResponseAgent
from treehub.services.agents.weather_monitor import WeatherMonitorAgent

logger = logging.getLogger("treehub.agents")

AGENT_CLASSES: dict[str, type[BaseAgent]] = {
    cls.agent_type: cls
    for cls in (StormResponseAgent, JobMatchingAgent, EquipmentIntelligenceAgent, WeatherMonitorAgent)
}

DEFAULT_AGENTS = [
    {
        "name": "Storm Response AI",
        "agent_type": "STORM_RESPONSE",
        "description": "Generates storm leads, alerts crews, and stages equipment when storms hit.",
        "config": {
            "lead_generation_enabled": True,
            "crew_alert_radius": 50,
            "max_leads_per_storm": 200,
            "commission_rate": 0.25,
        },
    },
    {
        "name": "Job Matching AI",
        "agent_type": "JOB_MATCHING",
        "description": "Scores contractors against new jobs and notifies the best matches.",
        "config": {
            "max_matches_per_job": 10,
            "auto_notify_contractors": True,
            "match_threshold": 0.6,
            "commission_rate": 0.07,
        },
    },
    {
        "name": "Equipment Intelligence AI",
        "agent_type": "EQUIPMENT_INTELLIGENCE",
        "description": "Predicts maintenance and optimizes pricing for listed equipment.",
        "config": {
            "maintenance_threshold": 60,
            "price_optimization_enabled": True,
            "utilization_target": 70,
        },
    },
    {
        "name": "Weather Monitor AI",
        "agent_type": "WEATHER_MONITOR",
        "description": "Polls monitored cities for weather and records storm events.",
        "config": {
            "monitoring_interval": 30,
            "storm_detection_threshold": 25,
            "alert_radius": 100,
        },
    },
]


class AgentManager:
    def __init__(self):
        self._agents: dict[int, BaseAgent] = {}

    def register(self, agent: BaseAgent) -> None:
        self._agents[agent.agent_id] = agent
        logger.info(f"Registered agent {agent.name} ({agent.agent_type})")

    def get(self, agent_id: int) -> Optional[BaseAgent]:
        return self._agents.get(agent_id)

    def registered(self) -> list[BaseAgent]:
        return list(self._agents.values())

    def clear(self) -> None:
        self._agents.clear()

    async def execute_agent(
        self,
        session: AsyncSession,
        agent_id: int,
        input_data: Optional[dict] = None,
        triggered_by: str = "manual",
    ) -> AgentResult:
        """Run one registered agent. Raises LookupError for an unknown id."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise LookupError(f"Agent not found: {agent_id}")

        context = AgentContext(
            agent_id=agent_id,
            execution_id=generate_execution_id(),
            triggered_by=triggered_by,
            input_data=input_data or {},
        )
        return await agent.execute_with_logging(session, context)

    async def execute_agents_by_type(
        self,
        session: AsyncSession,
        agent_type: str,
        input_data: Optional[dict] = None,
        triggered_by: str = "manual",
    ) -> list[AgentResult]:
        # Sequential: every agent shares the caller's session
        results = []
        for agent in [a for a in self._agents.values() if a.agent_type == agent_type]:
            results.append(await self.execute_agent(session, agent.agent_id, input_data, triggered_by))
        return results

    async def initialize_agents(self, session: AsyncSession) -> int:
        """Rebuild the registry from ACTIVE agent rows. Returns the count registered."""
        result = await session.execute(select(Agent).where(Agent.status == "ACTIVE"))
        rows = result.scalars().all()
        logger.info(f"Initializing {len(rows)} agents")

        self.clear()
        for row in rows:
            cls = AGENT_CLASSES.get(row.agent_type)
            if cls is None:
                logger.warning(f"Unknown agent type {row.agent_type} for agent {row.name}")
                continue
            self.register(cls(row.id, row.name, row.config))
        return len(self._agents)

    async def seed_default_agents(self, session: AsyncSession) -> dict:
        """Create the default agent rows that do not exist yet, then initialize."""
        created = 0
        for defaults in DEFAULT_AGENTS:
            result = await session.execute(select(Agent.id).where(Agent.name == defaults["name"]))
            if result.scalar_one_or_none():
                continue
            session.add(Agent(status="ACTIVE", **defaults))
            created += 1
        await session.flush()

        registered = await self.initialize_agents(session)
        logger.info(f"Seeded {created} agents, {registered} registered")
        return {"created": created, "registered": registered}


agent_manager = AgentManager()
