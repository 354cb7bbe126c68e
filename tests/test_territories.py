"""
Tests for territory scoring, protection and assignment
"""
from datetime import datetime, timedelta

import pytest

from factories import make_job, make_professional, make_territory, make_tier_status
from treehub.models.database import Transaction
from treehub.services.territories import (
    assign_professional,
    calculate_opportunity_score,
    county_metrics,
    create_territory,
    get_territory_analytics,
    home_county_territories,
    list_territories,
    market_penetration,
    protect_territory,
    update_territory_metrics,
)

NOW = datetime(2024, 6, 15, 12, 0)


@pytest.mark.unit
class TestOpportunityScore:
    """Tests for territory opportunity scoring"""

    def test_home_county(self):
        """Test that the home county earns the full home-market bonus"""
        territory = make_territory(median_income=100000)
        assert calculate_opportunity_score(territory, "Bucks", "PA") == 85

    def test_home_state(self):
        """Test that another county in the home state earns 15"""
        territory = make_territory(median_income=100000, county="Montgomery")
        assert calculate_opportunity_score(territory, "Bucks", "PA") == 75

    def test_out_of_market(self):
        """Test that territories outside the home state get no bonus"""
        territory = make_territory(median_income=100000, county="Mercer", state="NJ")
        assert calculate_opportunity_score(territory, "Bucks", "PA") == 60

    def test_income_is_capped(self):
        """Test that income contributes at most 30 points"""
        territory = make_territory(
            median_income=500000, households=None, tree_canopy=None, county="Mercer", state="NJ",
        )
        assert calculate_opportunity_score(territory, "Bucks", "PA") == 30

    def test_uses_configured_home_market(self):
        """Test that the home market defaults to configuration"""
        territory = make_territory(median_income=100000)
        assert calculate_opportunity_score(territory) == 85

    def test_market_penetration(self):
        """Test that penetration reaches 100% at 100 jobs"""
        assert market_penetration(25) == 25
        assert market_penetration(250) == 100

    def test_county_metrics(self):
        """Test the county summary roll-up"""
        territories = [
            make_territory(status="AVAILABLE", is_protected=False, opportunity_score=80),
            make_territory(status="PROTECTED", is_protected=True, opportunity_score=60),
        ]
        metrics = county_metrics(territories)
        assert metrics["total_territories"] == 2
        assert metrics["protected_territories"] == 1
        assert metrics["available_territories"] == 1
        assert metrics["average_opportunity_score"] == 70
        assert metrics["total_market_value"] == 2 * 95000 * 12000


@pytest.mark.integration
class TestTerritoryService:
    """Tests for territory persistence"""

    async def _tiered_professional(self, session, tier):
        pro = make_professional()
        session.add(pro)
        await session.flush()
        session.add(make_tier_status(professional_id=pro.id, current_tier=tier))
        await session.flush()
        return pro

    async def test_create_scores_territory(self, session):
        """Test that new territories are available and scored"""
        territory = await create_territory(
            session, name="Doylestown", zip_code="18901", county="Bucks", state="PA",
            population=30000, households=12000, median_income=100000, tree_canopy=40,
        )
        assert territory.id is not None
        assert territory.status == "AVAILABLE"
        assert territory.opportunity_score == 85

    async def test_list_filters_and_orders(self, session):
        """Test that listing filters by county and orders by opportunity"""
        await create_territory(session, name="Low", county="Bucks", state="PA", median_income=20000)
        await create_territory(session, name="High", county="Bucks", state="PA", median_income=100000)
        await create_territory(session, name="Elsewhere", county="Mercer", state="NJ", median_income=100000)

        names = [t.name for t in await list_territories(session, county="Bucks")]
        assert names == ["High", "Low"]

    async def test_protect_gold_professional(self, session):
        """Test that a GOLD professional can protect an available territory"""
        pro = await self._tiered_professional(session, "GOLD")
        territory = await create_territory(session, name="Doylestown", county="Bucks", state="PA")

        protected = await protect_territory(session, territory.id, pro.id, now=NOW)

        assert protected.status == "PROTECTED"
        assert protected.is_protected is True
        assert protected.protected_by_id == pro.id
        assert protected.exclusive_until == NOW + timedelta(days=365)
        assert protected.monthly_fee == 299.0

    async def test_protect_custom_fee(self, session):
        """Test that an explicit exclusivity fee overrides the default"""
        pro = await self._tiered_professional(session, "ELITE")
        territory = await create_territory(session, name="Newtown", county="Bucks", state="PA")
        protected = await protect_territory(session, territory.id, pro.id, exclusivity_fee=499)
        assert protected.monthly_fee == 499

    async def test_protect_requires_gold(self, session):
        """Test that SILVER professionals cannot protect territory"""
        pro = await self._tiered_professional(session, "SILVER")
        territory = await create_territory(session, name="Doylestown", county="Bucks", state="PA")
        with pytest.raises(ValueError, match="not eligible"):
            await protect_territory(session, territory.id, pro.id)

    async def test_protect_twice(self, session):
        """Test that a protected territory cannot be protected again"""
        first = await self._tiered_professional(session, "GOLD")
        second = await self._tiered_professional(session, "PLATINUM")
        territory = await create_territory(session, name="Doylestown", county="Bucks", state="PA")
        await protect_territory(session, territory.id, first.id)
        with pytest.raises(ValueError, match="not available"):
            await protect_territory(session, territory.id, second.id)

    async def test_assign_once(self, session):
        """Test that a professional is assigned to a territory only once"""
        pro = await self._tiered_professional(session, "BRONZE")
        territory = await create_territory(session, name="Doylestown", county="Bucks", state="PA")

        assignment = await assign_professional(session, territory.id, pro.id, "BACKUP", 2)
        assert assignment.assignment_type == "BACKUP"
        with pytest.raises(ValueError):
            await assign_professional(session, territory.id, pro.id)

    async def test_update_metrics(self, session):
        """Test that jobs in the territory's zip code are counted"""
        territory = await create_territory(session, name="Doylestown", zip_code="18901", county="Bucks", state="PA")
        for amount in (1000, 2000):
            job = make_job(zip_code="18901")
            job.transactions = [Transaction(amount=amount)]
            session.add(job)
        session.add(make_job(zip_code="19103"))
        await session.flush()

        metrics = await update_territory_metrics(session, territory.id)

        assert metrics == {"total_jobs": 2, "total_revenue": 3000, "market_penetration": 2}

    async def test_update_metrics_missing(self, session):
        """Test that an unknown territory returns None"""
        assert await update_territory_metrics(session, 404) is None

    async def test_home_county(self, session):
        """Test that the home county view uses configured county and state"""
        await create_territory(session, name="Doylestown", county="Bucks", state="PA")
        await create_territory(session, name="Trenton", county="Mercer", state="NJ")

        result = await home_county_territories(session)

        assert [t.name for t in result["territories"]] == ["Doylestown"]
        assert result["metrics"]["total_territories"] == 1

    async def test_analytics_tier_coverage(self, session):
        """Test that analytics counts territories covered by each upper tier"""
        pro = await self._tiered_professional(session, "GOLD")
        territory = await create_territory(session, name="Doylestown", county="Bucks", state="PA")
        await create_territory(session, name="Newtown", county="Bucks", state="PA")
        await assign_professional(session, territory.id, pro.id)

        analytics = await get_territory_analytics(session)

        assert analytics["total_territories"] == 2
        assert analytics["tier_distribution"] == {"gold": 1, "platinum": 0, "elite": 0}
