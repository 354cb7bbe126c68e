"""
Tests for the professional tier engine
"""
from datetime import datetime

import pytest

from factories import make_job, make_professional, make_tier_status
from treehub.models.database import Review, Transaction
from treehub.services.tiers import (
    TIER_CRITERIA,
    apply_promotion,
    check_advancement,
    check_tier_advancement,
    compute_monthly_metrics,
    get_tier_analytics,
    initialize_tier,
    month_bounds,
    monthly_tier_review,
    next_tier,
    promote_professional,
    tier_benefits,
    tier_dashboard,
    update_performance_metrics,
)

NOW = datetime(2024, 6, 15, 12, 0)


def completed_job(completed_at, amount, rating, professional_id=None, **kw):
    job = make_job(status="COMPLETED", completed_at=completed_at, assigned_professional_id=professional_id, **kw)
    job.transactions = [Transaction(amount=amount, status="COMPLETED")]
    job.reviews = [Review(rating=rating, professional_id=professional_id)]
    return job


@pytest.mark.unit
class TestTierLadder:
    """Tests for tier ordering and benefits"""

    def test_next_tier(self):
        """Test that tiers advance one step at a time"""
        assert next_tier("BRONZE") == "SILVER"
        assert next_tier("PLATINUM") == "ELITE"
        assert next_tier("ELITE") is None

    def test_criteria_thresholds(self):
        """Test the static thresholds for the upper tiers"""
        gold = TIER_CRITERIA["GOLD"]
        assert (gold.min_monthly_jobs, gold.min_monthly_revenue, gold.min_rating) == (8, 5000, 4.0)
        assert TIER_CRITERIA["ELITE"].max_complaint_ratio == 0.05

    @pytest.mark.parametrize("tier,protection,bonus,analytics", [
        ("BRONZE", False, 0, False),
        ("SILVER", False, 0, False),
        ("GOLD", True, 5, False),
        ("PLATINUM", True, 10, True),
        ("ELITE", True, 15, True),
    ])
    def test_benefits(self, tier, protection, bonus, analytics):
        """Test that benefits unlock from GOLD upward"""
        benefits = tier_benefits(tier)
        assert benefits["territory_protection"] is protection
        assert benefits["bonus_percentage"] == bonus
        assert benefits["advanced_analytics"] is analytics

    def test_month_bounds_wraps_year(self):
        """Test that December's month ends at the next January"""
        start, end = month_bounds(datetime(2024, 12, 20, 8, 30))
        assert start == datetime(2024, 12, 1)
        assert end == datetime(2025, 1, 1)


@pytest.mark.unit
class TestMonthlyMetrics:
    """Tests for monthly performance aggregation"""

    def test_metrics_for_current_month(self):
        """Test that only jobs completed this month are counted"""
        jobs = [
            completed_job(datetime(2024, 6, 3), 1000, 5),
            completed_job(datetime(2024, 6, 10), 500, 2),
            completed_job(datetime(2024, 5, 30), 9000, 5),
        ]
        metrics = compute_monthly_metrics(jobs, NOW)

        assert metrics["monthly_jobs"] == 2
        assert metrics["monthly_revenue"] == 1500
        assert metrics["average_rating"] == 3.5
        assert metrics["complaint_count"] == 1
        assert metrics["complaint_ratio"] == 0.5

    def test_no_jobs(self):
        """Test that an empty month has zeroed metrics"""
        metrics = compute_monthly_metrics([], NOW)
        assert metrics["monthly_jobs"] == 0
        assert metrics["average_rating"] == 0


@pytest.mark.unit
class TestAdvancement:
    """Tests for promotion eligibility"""

    def test_eligible_for_silver(self):
        """Test that meeting every SILVER threshold makes BRONZE eligible"""
        status = make_tier_status(monthly_jobs=3, monthly_revenue=1500, average_rating=4.0)
        check = check_advancement(status)
        assert check["eligible"] is True
        assert check["next_tier"] == "SILVER"
        assert check["details"]["jobs"] == "3/3"

    def test_complaints_block_promotion(self):
        """Test that too many complaints per job blocks promotion"""
        status = make_tier_status(monthly_jobs=3, monthly_revenue=1500, average_rating=4.0, complaint_count=1)
        assert check_advancement(status)["eligible"] is False

    def test_short_on_revenue(self):
        """Test that every threshold must be met"""
        status = make_tier_status(monthly_jobs=10, monthly_revenue=1499, average_rating=5.0)
        assert check_advancement(status)["eligible"] is False

    def test_highest_tier(self):
        """Test that ELITE has nowhere to go"""
        check = check_advancement(make_tier_status(current_tier="ELITE"))
        assert check == {"eligible": False, "reason": "Already at highest tier"}

    def test_apply_promotion(self):
        """Test that promotion moves up one tier and grants benefits"""
        status = make_tier_status(current_tier="SILVER", months_in_tier=4, points=20)
        assert apply_promotion(status, NOW) == "GOLD"

        assert status.previous_tier == "SILVER"
        assert status.status == "PROMOTED"
        assert status.months_in_tier == 0
        assert status.points == 120
        assert status.badges == ["GOLD_TIER_ACHIEVED"]
        assert status.next_tier == "PLATINUM"
        assert status.territory_protection is True
        assert status.bonus_percentage == 5
        assert status.promoted_at == NOW

    def test_apply_promotion_at_top(self):
        """Test that ELITE cannot be promoted"""
        with pytest.raises(ValueError):
            apply_promotion(make_tier_status(current_tier="ELITE"))


@pytest.mark.integration
class TestTierService:
    """Tests for tier persistence"""

    async def _professional(self, session, **kw):
        pro = make_professional(**kw)
        session.add(pro)
        await session.flush()
        return pro

    async def test_initialize_is_idempotent(self, session):
        """Test that a professional gets exactly one BRONZE status"""
        pro = await self._professional(session)
        first = await initialize_tier(session, pro.id)
        second = await initialize_tier(session, pro.id)

        assert first.id == second.id
        assert first.current_tier == "BRONZE"
        assert first.next_tier == "SILVER"

    async def test_update_metrics_and_promote(self, session):
        """Test that this month's completed work leads to promotion"""
        pro = await self._professional(session)
        await initialize_tier(session, pro.id)
        for day in (2, 5, 9):
            session.add(completed_job(datetime(2024, 6, day), 600, 5, pro.id))
        await session.flush()

        metrics = await update_performance_metrics(session, pro.id, NOW)
        assert metrics["monthly_jobs"] == 3
        assert metrics["monthly_revenue"] == 1800

        check = await check_tier_advancement(session, pro.id)
        assert check["eligible"] is True

        status = await promote_professional(session, pro.id)
        assert status.current_tier == "SILVER"
        assert status.points == 100

    async def test_promote_ineligible(self, session):
        """Test that promoting without meeting thresholds raises"""
        pro = await self._professional(session)
        await initialize_tier(session, pro.id)
        with pytest.raises(ValueError):
            await promote_professional(session, pro.id)

    async def test_missing_status(self, session):
        """Test that operations on an untiered professional return None"""
        assert await update_performance_metrics(session, 42) is None
        assert await check_tier_advancement(session, 42) is None
        assert await promote_professional(session, 42) is None
        assert await tier_dashboard(session, 42) is None

    async def test_dashboard(self, session):
        """Test the dashboard summary for a fresh professional"""
        pro = await self._professional(session)
        await initialize_tier(session, pro.id)
        dashboard = await tier_dashboard(session, pro.id)

        assert dashboard["current_tier"] == "BRONZE"
        assert dashboard["advancement"]["eligible"] is False
        assert dashboard["advancement"]["next_tier"] == "SILVER"
        assert dashboard["badges"] == []

    async def test_analytics(self, session):
        """Test the tier distribution and top performers"""
        a = await self._professional(session)
        b = await self._professional(session)
        session.add_all([
            make_tier_status(professional_id=a.id, current_tier="PLATINUM", monthly_revenue=15000),
            make_tier_status(professional_id=b.id, current_tier="BRONZE", monthly_revenue=500),
        ])
        await session.flush()

        analytics = await get_tier_analytics(session)

        assert analytics["total_professionals"] == 2
        assert analytics["tier_distribution"] == {"PLATINUM": 1, "BRONZE": 1}
        assert analytics["average_metrics"]["monthly_revenue"] == 7750
        assert analytics["top_performers"] == [
            {"professional_id": a.id, "tier": "PLATINUM", "monthly_revenue": 15000},
        ]

    async def test_monthly_review(self, session):
        """Test that the review refreshes every tiered professional"""
        pro = await self._professional(session)
        await self._professional(session, role="HOMEOWNER")
        await initialize_tier(session, pro.id)
        for day in (2, 5, 9):
            session.add(completed_job(datetime(2024, 6, day), 600, 5, pro.id))
        await session.flush()

        summary = await monthly_tier_review(session, NOW)

        assert summary == {"reviewed": 1, "eligible": 1, "errors": []}
        dashboard = await tier_dashboard(session, pro.id)
        assert dashboard["months_in_tier"] == 1
        assert dashboard["performance"]["monthly_jobs"] == 3
