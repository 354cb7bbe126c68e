"""Job matching agent: scores eligible contractors for a job and stores the top matches."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treehub.models.database import Bid, Job, JobMatch, Professional
from treehub.services.agents.base import AgentContext, AgentResult, BaseAgent
from treehub.services.geocode import geocode, has_coordinates
from treehub.services.scoring import (
    is_eligible, market_price, match_revenue_projection, rank_matches, score_contractor,
)

logger = logging.getLogger("treehub.agents.job_matching")

CONTRACTOR_ROLES = ("PROFESSIONAL", "COMPANY")
MARKET_WINDOW_DAYS = 90


async def locate_job(job: Job) -> None:
    """Fill in missing job coordinates from its city and state."""
    if has_coordinates(job) or not job.city:
        return
    coords = await geocode(f"{job.city}, {job.state}" if job.state else job.city)
    if coords:
        job.latitude, job.longitude = coords


async def find_candidates(session: AsyncSession, job: Job, now: Optional[datetime] = None) -> list[Professional]:
    query = (
        select(Professional)
        .where(Professional.role.in_(CONTRACTOR_ROLES), Professional.status == "ACTIVE")
        .options(selectinload(Professional.bids), selectinload(Professional.reviews))
    )
    if job.city and job.state:
        query = query.where(Professional.state == job.state)
    result = await session.execute(query)
    return [c for c in result.scalars().all() if is_eligible(job, c, now)]


async def job_market_price(session: AsyncSession, job: Job, now: datetime) -> Optional[float]:
    """Average accepted bid on same-type jobs in the same city over 90 days."""
    result = await session.execute(
        select(Bid.amount)
        .join(Job, Bid.job_id == Job.id)
        .where(
            Job.job_type == job.job_type,
            Job.city == job.city,
            Job.state == job.state,
            Job.created_at >= now - timedelta(days=MARKET_WINDOW_DAYS),
            Bid.status == "ACCEPTED",
        )
    )
    return market_price(result.scalars().all())


class JobMatchingAgent(BaseAgent):
    agent_type = "JOB_MATCHING"

    async def execute(self, session: AsyncSession, context: AgentContext) -> AgentResult:
        data = context.input_data
        job_id = data.get("job_id")
        max_matches = data.get("max_matches", self.config.get("max_matches_per_job", 10))
        auto_notify = data.get("auto_notify", self.config.get("auto_notify_contractors", True))
        now = context.timestamp

        job = await session.get(Job, job_id) if job_id is not None else None
        if not job:
            raise ValueError(f"Job not found: {job_id}")

        logger.info(f"Finding matches for job {job.id}: {job.title} ({job.job_type})")
        await locate_job(job)

        contractors = await find_candidates(session, job, now)
        market = await job_market_price(session, job, now)
        competitors = max(len(contractors) - 1, 0)
        top = rank_matches(
            [score_contractor(job, c, market, now, competitors) for c in contractors],
            max_matches,
        )

        # Re-running replaces the job's previous matches
        await session.execute(delete(JobMatch).where(JobMatch.job_id == job.id))
        rows = [
            JobMatch(
                job_id=job.id,
                professional_id=m["contractor_id"],
                match_score=m["match_score"],
                location_score=m["location_score"] * 100,
                skill_score=m["skill_score"] * 100,
                availability_score=m["availability_score"] * 100,
                price_score=m["price_score"] * 100,
                suggested_bid=m["suggested_bid"],
                win_probability=m["win_probability"],
                competitor_count=m["competitor_count"],
                average_market_price=market or 0,
                travel_distance=m["travel_distance"],
                match_reasons=m["match_reasons"],
                contractor_notified=bool(auto_notify),
                agent_id=self.agent_id,
            )
            for m in top
        ]
        session.add_all(rows)
        await session.flush()

        if auto_notify:
            for m in top:
                logger.info(f"Notified contractor {m['contractor_id']} of job {job.id} (score {m['match_score']})")

        projection = match_revenue_projection(top, self.config.get("commission_rate", 0.07))
        return AgentResult(
            success=True,
            output_data={
                "job_id": job.id,
                "matches_found": len(top),
                "top_matches": top[:5],
                "notifications": len(rows) if auto_notify else 0,
                "revenue_projection": projection,
            },
            jobs_matched=len(top),
            revenue_generated=projection["commission"],
        )
