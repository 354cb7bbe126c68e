"""
Tests for AI subscription plans, billing and limits
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from factories import make_professional
from treehub.models.database import Lead, RevenueRecord, Subscription
from treehub.services.subscriptions import (
    apply_plan,
    cancel_subscription,
    check_limit,
    create_subscription,
    get_plan,
    get_subscription_analytics,
    is_annual_period,
    plan_price,
    process_payment,
    subscription_analytics,
    within_limit,
)

NOW = datetime(2024, 6, 15, 12, 0)


def active(tier="BASIC", **kw) -> Subscription:
    sub = Subscription(professional_id=1, status="ACTIVE", **kw)
    apply_plan(sub, tier)
    return sub


@pytest.mark.unit
class TestPlans:
    """Tests for the plan table"""

    def test_prices(self):
        """Test monthly and annual prices for each plan"""
        assert [plan_price(t) for t in ("BASIC", "PREMIUM", "ENTERPRISE")] == [99, 299, 999]
        assert plan_price("PREMIUM", is_annual=True) == 2990

    def test_unknown_tier(self):
        with pytest.raises(ValueError):
            get_plan("GOLD")

    def test_apply_plan(self):
        """Test that a plan sets prices, features and limits"""
        sub = active("PREMIUM")

        assert sub.monthly_price == 299
        assert sub.features["storm_response_agent"] is True
        assert sub.features["api_access"] is False
        assert sub.monthly_lead_limit == 200
        assert sub.monthly_job_matches == 500
        assert sub.weather_api_calls == 5000

    def test_annual_period(self):
        """Test that periods longer than 35 days bill annually"""
        assert is_annual_period(Subscription(current_period_start=NOW, current_period_end=NOW + timedelta(days=365)))
        assert not is_annual_period(Subscription(current_period_start=NOW, current_period_end=NOW + timedelta(days=30)))
        assert not is_annual_period(Subscription())


@pytest.mark.unit
class TestLimits:
    """Tests for monthly usage limits"""

    def test_under_and_at_limit(self):
        sub = active()
        assert within_limit(sub, "leads", 49) is True
        assert within_limit(sub, "leads", 50) is False
        assert within_limit(sub, "job_matches", 99) is True

    def test_untracked_limit_allowed(self):
        assert within_limit(active(), "weather_api_calls", 10 ** 6) is True

    def test_inactive_has_no_allowance(self):
        """Test that trials, cancelled plans and no plan get nothing"""
        trial = active()
        trial.status = "TRIAL"
        assert within_limit(trial, "leads", 0) is False
        assert within_limit(None, "leads", 0) is False


@pytest.mark.unit
class TestAnalytics:
    """Tests for the subscription roll-up"""

    def test_analytics(self):
        subs = [active(), active("PREMIUM"), Subscription(status="TRIAL"), Subscription(status="CANCELLED")]
        records = [
            RevenueRecord(subcategory="BASIC", amount=99),
            RevenueRecord(subcategory="PREMIUM", amount=299),
            RevenueRecord(subcategory="BASIC", amount=99),
        ]

        result = subscription_analytics(subs, records)

        assert result["total_subscriptions"] == 4
        assert result["active_subscriptions"] == 2
        assert result["trial_subscriptions"] == 1
        assert result["conversion_rate"] == 50
        assert result["churn_rate"] == 25
        assert result["monthly_recurring_revenue"] == 497
        assert {"tier": "BASIC", "revenue": 198} in result["revenue_by_tier"]

    def test_empty(self):
        result = subscription_analytics([], [])
        assert result["conversion_rate"] == 0
        assert result["revenue_by_tier"] == []


@pytest.mark.integration
class TestSubscriptionService:
    """Tests for subscription lifecycle against the database"""

    async def _pro(self, session):
        pro = make_professional()
        session.add(pro)
        await session.flush()
        return pro

    async def _records(self, session):
        return (await session.scalars(select(RevenueRecord).order_by(RevenueRecord.id))).all()

    async def test_create_starts_trial(self, session):
        """Test that a new subscription is a 14-day trial with a zero revenue record"""
        pro = await self._pro(session)

        sub = await create_subscription(session, pro.id, "BASIC", now=NOW)

        assert sub.status == "TRIAL"
        assert sub.trial_ends_at == NOW + timedelta(days=14)
        assert sub.current_period_end == NOW + timedelta(days=30)
        [record] = await self._records(session)
        assert record.category == "AI_Subscription"
        assert record.subcategory == "BASIC"
        assert record.amount == 0

    async def test_create_again_upgrades(self, session):
        """Test that subscribing twice upgrades and books the new price"""
        pro = await self._pro(session)
        await create_subscription(session, pro.id, "BASIC", now=NOW)

        sub = await create_subscription(session, pro.id, "PREMIUM", is_annual=True, now=NOW)

        assert sub.tier == "PREMIUM"
        assert sub.status == "ACTIVE"
        assert sub.monthly_lead_limit == 200
        upgrade = (await self._records(session))[-1]
        assert upgrade.subcategory == "PREMIUM_Upgrade"
        assert upgrade.amount == 2990
        assert await session.scalar(select(Subscription.id).where(Subscription.professional_id == pro.id)) == sub.id

    async def test_payment_books_margin(self, session):
        """Test that a payment activates the plan and books revenue at 85% margin"""
        pro = await self._pro(session)
        await create_subscription(session, pro.id, "ENTERPRISE", is_annual=True, now=NOW)
        later = NOW + timedelta(days=365)

        result = await process_payment(session, pro.id, now=later)

        assert result["amount"] == 9990
        assert result["next_billing_date"] == later + timedelta(days=365)
        payment = (await self._records(session))[-1]
        assert payment.subcategory == "ENTERPRISE"
        assert payment.profit_margin == 85
        assert payment.source == "Subscription"

    async def test_missing_subscription(self, session):
        assert await process_payment(session, 404) is None
        assert await cancel_subscription(session, 404) is None
        assert await check_limit(session, 404, "leads") is False

    async def test_check_limit_counts_this_month(self, session):
        """Test that only this month's assigned leads count toward the limit"""
        pro = await self._pro(session)
        sub = await create_subscription(session, pro.id, "BASIC", now=NOW)
        sub.status = "ACTIVE"
        sub.monthly_lead_limit = 2
        session.add_all([
            Lead(assigned_professional_id=pro.id, created_at=NOW),
            Lead(assigned_professional_id=pro.id, created_at=NOW - timedelta(days=40)),
        ])
        await session.flush()

        assert await check_limit(session, pro.id, "leads", now=NOW) is True

        session.add(Lead(assigned_professional_id=pro.id, created_at=NOW))
        await session.flush()
        assert await check_limit(session, pro.id, "leads", now=NOW) is False

    async def test_job_match_limit(self, session):
        pro = await self._pro(session)
        sub = await create_subscription(session, pro.id, "BASIC", now=NOW)
        sub.status = "ACTIVE"
        sub.monthly_job_matches = 0
        await session.flush()

        assert await check_limit(session, pro.id, "job_matches", now=NOW) is False

    async def test_cancel(self, session):
        pro = await self._pro(session)
        await create_subscription(session, pro.id, "BASIC", now=NOW)

        sub = await cancel_subscription(session, pro.id, now=NOW)

        assert sub.status == "CANCELLED"
        assert sub.cancelled_at == NOW
        assert await check_limit(session, pro.id, "leads", now=NOW) is False

    async def test_analytics_window(self, session):
        """Test that analytics only sums the last 30 days of subscription revenue"""
        pro = await self._pro(session)
        await create_subscription(session, pro.id, "BASIC", now=NOW)
        await process_payment(session, pro.id, now=NOW)
        session.add(RevenueRecord(
            source="Subscription", category="AI_Subscription", subcategory="BASIC",
            amount=99, created_at=NOW - timedelta(days=60),
        ))
        await session.flush()

        result = await get_subscription_analytics(session, now=datetime.utcnow())

        assert result["active_subscriptions"] == 1
        assert result["monthly_recurring_revenue"] == 99
