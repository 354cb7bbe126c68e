"""Agent runtime: execution context, results, and logged execution."""

import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Agent, AgentLog

logger = logging.getLogger("treehub.agents")

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_execution_id(now: Optional[float] = None) -> str:
    """``exec_<epoch ms>_<9 base-36 chars>``."""
    ms = int((now if now is not None else time.time()) * 1000)
    return f"exec_{ms}_{''.join(random.choices(_ID_ALPHABET, k=9))}"


@dataclass
class AgentContext:
    agent_id: int
    execution_id: str
    triggered_by: str = "manual"
    input_data: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass
class AgentResult:
    success: bool
    output_data: dict = field(default_factory=dict)
    error_message: Optional[str] = None
    processing_time: float = 0          # ms
    revenue_generated: float = 0
    leads_generated: int = 0
    jobs_matched: int = 0

    def to_dict(self) -> dict:
        return jsonable_encoder(self)


class BaseAgent:
    """One configured agent row bound to its engine.

    Subclasses set ``agent_type`` and implement ``execute``.  Callers use
    ``execute_with_logging``, which never raises for agent failures.
    """

    agent_type = ""

    def __init__(self, agent_id: int, name: str, config: Optional[dict] = None):
        self.agent_id = agent_id
        self.name = name
        self.config = config or {}

    async def execute(self, session: AsyncSession, context: AgentContext) -> AgentResult:
        raise NotImplementedError

    async def execute_with_logging(self, session: AsyncSession, context: AgentContext) -> AgentResult:
        logger.info(f"Executing agent {self.name} ({self.agent_type}) [{context.execution_id}]")
        start = time.perf_counter()

        try:
            # Savepoint so a failed run leaves nothing half-written
            async with session.begin_nested():
                result = await self.execute(session, context)
        except Exception as e:
            result = AgentResult(success=False, error_message=str(e)[:500])
            logger.error(f"Agent {self.name} failed: {e}")

        result.processing_time = round((time.perf_counter() - start) * 1000, 2)
        await self._record(session, context, result)

        if result.success:
            logger.info(f"Agent {self.name} finished in {result.processing_time}ms")
        return result

    async def _record(self, session: AsyncSession, context: AgentContext, result: AgentResult) -> None:
        """Write the AgentLog row and roll the run into the agent's counters."""
        try:
            async with session.begin_nested():
                session.add(AgentLog(
                    agent_id=self.agent_id,
                    execution_id=context.execution_id,
                    action=context.triggered_by,
                    input_data=jsonable_encoder(context.input_data),
                    output_data=jsonable_encoder(result.output_data),
                    success=result.success,
                    error_message=result.error_message,
                    processing_time=result.processing_time,
                    revenue_generated=result.revenue_generated,
                    leads_generated=result.leads_generated,
                    jobs_matched=result.jobs_matched,
                ))

                agent = await session.get(Agent, self.agent_id)
                if agent is None:
                    return
                runs = agent.total_executions or 0
                agent.avg_response_time = round(
                    ((agent.avg_response_time or 0) * runs + result.processing_time) / (runs + 1), 2
                )
                agent.total_executions = runs + 1
                agent.last_execution = datetime.utcnow()
                if result.success:
                    agent.successful_executions = (agent.successful_executions or 0) + 1
                    agent.total_revenue = (agent.total_revenue or 0) + result.revenue_generated
                    agent.leads_generated = (agent.leads_generated or 0) + result.leads_generated
                    agent.jobs_matched = (agent.jobs_matched or 0) + result.jobs_matched
                else:
                    agent.error_count = (agent.error_count or 0) + 1
        except Exception as e:
            logger.error(f"Failed to log execution {context.execution_id}: {e}")
