"""Agent endpoints: list, seed, execute, and inspect job matches."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from treehub.models.database import Agent, AgentLog, JobMatch, get_db
from treehub.models.schemas import (
    AgentExecuteRequest, AgentInitializeResponse, AgentOut, JobMatchOut,
)
from treehub.services.agents import agent_manager

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("", response_model=list[AgentOut])
async def list_agents(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Agent).order_by(Agent.id))
    return result.scalars().all()


@router.post("/initialize", response_model=AgentInitializeResponse)
async def initialize_agents(db: AsyncSession = Depends(get_db)):
    """Create any missing default agents and rebuild the registry."""
    return await agent_manager.seed_default_agents(db)


@router.post("/execute")
async def execute_agent(req: AgentExecuteRequest, db: AsyncSession = Depends(get_db)):
    """Run one agent by id, or every agent of a type."""
    if req.agent_id is None and not req.agent_type:
        raise HTTPException(status_code=400, detail="agent_id or agent_type is required")

    if not agent_manager.registered():
        await agent_manager.initialize_agents(db)

    if req.agent_id is not None:
        try:
            result = await agent_manager.execute_agent(db, req.agent_id, req.input_data, req.triggered_by)
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        results = [result]
    else:
        results = await agent_manager.execute_agents_by_type(db, req.agent_type, req.input_data, req.triggered_by)

    return {"results": [r.to_dict() for r in results]}


@router.get("/{agent_id}/logs")
async def agent_logs(
    agent_id: int,
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    agent = await db.get(Agent, agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    result = await db.execute(
        select(AgentLog).where(AgentLog.agent_id == agent_id).order_by(desc(AgentLog.created_at)).limit(limit)
    )
    return [
        {
            "execution_id": log.execution_id,
            "action": log.action,
            "success": log.success,
            "error_message": log.error_message,
            "processing_time": log.processing_time,
            "revenue_generated": log.revenue_generated,
            "created_at": log.created_at,
        }
        for log in result.scalars().all()
    ]


@router.get("/jobs/{job_id}/matches", response_model=list[JobMatchOut])
async def job_matches(job_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(JobMatch).where(JobMatch.job_id == job_id).order_by(desc(JobMatch.match_score))
    )
    return result.scalars().all()
