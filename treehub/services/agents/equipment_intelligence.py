"""Equipment intelligence agent: one listing when given an id, else the whole fleet."""

from sqlalchemy.ext.asyncio import AsyncSession

from treehub.services.agents.base import AgentContext, AgentResult, BaseAgent
from treehub.services.equipment import analyze_fleet, analyze_listing


class EquipmentIntelligenceAgent(BaseAgent):
    agent_type = "EQUIPMENT_INTELLIGENCE"

    async def execute(self, session: AsyncSession, context: AgentContext) -> AgentResult:
        equipment_id = context.input_data.get("equipment_id")

        if equipment_id is not None:
            analysis = await analyze_listing(session, equipment_id, context.timestamp)
            if analysis is None:
                raise ValueError(f"Equipment not found: {equipment_id}")
            impact = analysis["revenue_impact"]
            output = analysis
        else:
            output = await analyze_fleet(session, context.timestamp)
            impact = output["total_revenue_impact"]

        return AgentResult(success=True, output_data=output, revenue_generated=max(impact, 0))
