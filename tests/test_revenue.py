"""
Tests for the revenue and commission calculator
"""
from datetime import datetime, timedelta

import pytest

from factories import make_equipment, make_job
from treehub.models.database import Agent, Lead, RevenueRecord, Transaction
from treehub.services.revenue import (
    ai_roi,
    ai_roi_analysis,
    calculate_growth_rate,
    calculate_lead_commission,
    equipment_rate,
    group_revenue_by_month,
    lead_source_rate,
    project_revenue,
    revenue_analytics,
    revenue_projections,
    revenue_trend,
    track_equipment_commission,
    track_job_commission,
    track_lead_conversion,
)


def record(amount, created_at, **kw):
    return RevenueRecord(source=kw.pop("source", "Lead_Generation"), amount=amount, created_at=created_at, **kw)


@pytest.mark.unit
class TestRates:
    """Tests for commission rate lookups"""

    def test_lead_commission_default(self):
        """Test that lead commission defaults to 25%"""
        assert calculate_lead_commission(1000) == 250
        assert calculate_lead_commission(1000, 0.1) == 100

    @pytest.mark.parametrize("source,rate", [
        ("Storm_Response", 0.25),
        ("Weather_Alert", 0.20),
        ("SEO", 0.15),
        ("Referral", 0.10),
        ("Billboard", 0.15),
        (None, 0.15),
    ])
    def test_lead_source_rates(self, source, rate):
        """Test the per-source lead rates and their default"""
        assert lead_source_rate(source) == rate

    def test_equipment_rates(self):
        """Test that rentals take 8% and anything else 10%"""
        assert equipment_rate("EQUIPMENT_RENTAL") == 0.08
        assert equipment_rate("EQUIPMENT_SALE") == 0.10
        assert equipment_rate("OTHER") == 0.10


@pytest.mark.unit
class TestRollups:
    """Tests for monthly grouping, growth and projections"""

    def test_group_by_month(self):
        """Test that records are summed per calendar month in order"""
        records = [
            record(200, datetime(2024, 3, 5)),
            record(100, datetime(2024, 1, 2)),
            record(50, datetime(2024, 1, 28)),
        ]
        assert group_revenue_by_month(records) == [
            {"month": "2024-01", "revenue": 150},
            {"month": "2024-03", "revenue": 200},
        ]

    def test_growth_rate_is_compound(self):
        """Test that growth is compounded across the months between ends"""
        monthly = [{"revenue": 100}, {"revenue": 150}, {"revenue": 400}]
        assert calculate_growth_rate(monthly) == pytest.approx(1.0)

    def test_growth_rate_degenerate(self):
        """Test that one month or a zero start gives no growth"""
        assert calculate_growth_rate([{"revenue": 100}]) == 0
        assert calculate_growth_rate([{"revenue": 0}, {"revenue": 100}]) == 0

    def test_flat_projection(self):
        """Test that without growth each month repeats the current revenue"""
        result = project_revenue([{"month": "2024-05", "revenue": 1000}], datetime(2024, 6, 1))

        assert result["current_month_revenue"] == 1000
        assert result["growth_rate"] == 0
        assert len(result["projections"]) == 12
        assert all(p["projected_revenue"] == 1000 for p in result["projections"])
        assert result["annual_projection"] == 12000

    def test_projection_confidence_decays_to_floor(self):
        """Test that confidence drops 5% per month down to 50%"""
        projections = project_revenue([], datetime(2024, 6, 1))["projections"]
        assert projections[0]["confidence"] == 0.95
        assert projections[-1]["confidence"] == 0.5
        assert projections[0]["month"] == "2024-07"

    def test_trend_buckets(self):
        """Test that a weekly trend has one bucket per day"""
        start = datetime(2024, 6, 1)
        records = [record(100, start + timedelta(hours=36)), record(40, start + timedelta(hours=40))]
        trend = revenue_trend(records, start, "weekly")

        assert len(trend) == 7
        assert trend[0] == {"date": "2024-06-01", "revenue": 0}
        assert trend[1]["revenue"] == 140

    def test_yearly_trend_has_twelve_buckets(self):
        """Test that a yearly trend is bucketed by month"""
        assert len(revenue_trend([], datetime(2024, 1, 1), "yearly")) == 12


@pytest.mark.unit
class TestAiRoi:
    """Tests for agent ROI analysis"""

    def test_roi_by_agent_type(self):
        """Test that ROI is computed per agent type and overall"""
        storm = Agent(name="Storm", agent_type="STORM_RESPONSE")
        matcher = Agent(name="Match", agent_type="JOB_MATCHING")
        now = datetime(2024, 6, 1)
        records = [
            record(150, now, agent=storm),
            record(50, now, agent=storm),
            record(100, now, agent=matcher),
        ]
        result = ai_roi_analysis(records)

        assert result["total_ai_revenue"] == 300
        assert result["total_ai_cost"] == 100
        assert result["overall_roi"] == 200
        assert result["payback_period_days"] == 10
        assert result["roi_by_agent"]["STORM_RESPONSE"]["revenue"] == 200
        assert result["roi_by_agent"]["STORM_RESPONSE"]["cost"] == 50
        assert result["roi_by_agent"]["STORM_RESPONSE"]["roi"] == 300
        assert result["roi_by_agent"]["JOB_MATCHING"]["roi"] == 100

    def test_no_agent_revenue(self):
        """Test that no records means no ROI and no payback period"""
        result = ai_roi_analysis([])
        assert result["overall_roi"] == 0
        assert result["payback_period_days"] is None


@pytest.mark.integration
class TestTracking:
    """Tests for booking commissions against the database"""

    async def test_lead_conversion(self, session):
        """Test that converting a lead books the source commission"""
        lead = Lead(source="SEO", customer_name="Jane Doe")
        session.add(lead)
        await session.flush()

        result = await track_lead_conversion(session, lead.id, 1000)

        assert result["commission"] == pytest.approx(150)
        assert result["commission_rate"] == 0.15
        assert lead.status == "Converted"
        assert lead.conversion_value == 1000
        assert lead.converted_at is not None
        rec = (await session.execute(RevenueRecord.__table__.select())).one()
        assert rec.source == "Lead_Generation"
        assert rec.category == "Lead_Conversion"
        assert rec.subcategory == "SEO"
        assert rec.profit_margin == 95

    async def test_lead_conversion_missing(self, session):
        """Test that an unknown lead returns None"""
        assert await track_lead_conversion(session, 999, 1000) is None

    async def test_job_commission(self, session):
        """Test that only completed payments count toward job value"""
        job = make_job()
        job.transactions = [
            Transaction(amount=1000, status="COMPLETED"),
            Transaction(amount=500, status="COMPLETED"),
            Transaction(amount=700, status="PENDING"),
        ]
        session.add(job)
        await session.flush()

        result = await track_job_commission(session, job.id)

        assert result["job_value"] == 1500
        assert result["commission"] == pytest.approx(75)

    async def test_equipment_commission(self, session):
        """Test that rentals are commissioned at the rental rate"""
        eq = make_equipment()
        session.add(eq)
        await session.flush()
        txn = Transaction(equipment_id=eq.id, transaction_type="EQUIPMENT_RENTAL", amount=1000)
        session.add(txn)
        await session.flush()

        result = await track_equipment_commission(session, txn.id)

        assert result["commission"] == pytest.approx(80)
        assert result["commission_rate"] == 0.08

    async def test_equipment_commission_requires_equipment(self, session):
        """Test that a transaction without equipment is not commissioned"""
        txn = Transaction(amount=1000, transaction_type="JOB_PAYMENT")
        session.add(txn)
        await session.flush()
        assert await track_equipment_commission(session, txn.id) is None


@pytest.mark.integration
class TestAnalytics:
    """Tests for revenue analytics over stored records"""

    async def test_revenue_analytics(self, session):
        """Test totals, categories and agent attribution for the period"""
        now = datetime.utcnow()
        agent = Agent(name="Storm Response AI", agent_type="STORM_RESPONSE")
        session.add(agent)
        await session.flush()
        session.add_all([
            record(100, now - timedelta(days=2), category="Lead_Conversion"),
            record(50, now - timedelta(days=3), category="Lead_Conversion"),
            record(200, now - timedelta(days=1), category="Storm_Response", agent_id=agent.id),
            record(999, now - timedelta(days=60), category="Lead_Conversion"),
            Lead(source="SEO", status="Converted"),
            Lead(source="SEO"),
        ])
        await session.flush()

        result = await revenue_analytics(session, "monthly", now)

        assert result["total_revenue"] == 350
        categories = {c["category"]: c for c in result["revenue_by_category"]}
        assert categories["Lead_Conversion"]["revenue"] == 150
        assert categories["Lead_Conversion"]["transactions"] == 2
        assert result["revenue_by_agent"] == [{
            "agent_id": agent.id,
            "agent_name": "Storm Response AI",
            "agent_type": "STORM_RESPONSE",
            "revenue": 200,
        }]
        assert len(result["revenue_trend"]) == 30
        assert result["performance_metrics"]["lead_conversion_rate"] == 50

    async def test_projections_from_recent_revenue(self, session):
        """Test that a single month of history projects flat"""
        session.add(record(300, datetime.utcnow()))
        await session.flush()

        result = await revenue_projections(session)

        assert result["current_month_revenue"] == 300
        assert result["annual_projection"] == 3600

    async def test_ai_roi_only_counts_agent_revenue(self, session):
        """Test that records without an agent are excluded"""
        agent = Agent(name="Job Matching AI", agent_type="JOB_MATCHING")
        session.add(agent)
        await session.flush()
        session.add_all([
            record(500, datetime.utcnow(), agent_id=agent.id),
            record(800, datetime.utcnow()),
        ])
        await session.flush()

        result = await ai_roi(session)

        assert result["total_ai_revenue"] == 500
        assert result["total_ai_cost"] == 50
