"""Tests for cost synchronization module."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from costpilot.core.exceptions import CostQueryShapeError, ProviderError
from costpilot.core.sync.costs import run_backfill, sync_costs
from costpilot.models.cost import CostEvent, DailyCostResource
from costpilot.models.sync import SyncJob

from tests.factories import SQL_ID, VM_ID
from tests.unit.sync.fakes import FakeBillingProvider, billing_row


class TestCostSync:
    """Test suite for cost synchronization."""

    @pytest.mark.asyncio
    async def test_sync_costs_success(self, session_factory, db_session, add_subscription, today):
        """Test rows from the billing provider are stored per target."""
        add_subscription("user-1", "sub-1")
        provider = FakeBillingProvider({
            "sub-1": [billing_row(1, VM_ID, "10.5"), billing_row(1, SQL_ID, "2.25")],
        })

        result = await sync_costs(days=7, billing_provider=provider)

        assert result["processed"] == 1
        assert result["errors"] == 0
        assert result["start_date"] == today - timedelta(days=6)
        assert provider.calls == [("sub-1", today - timedelta(days=6), today)]

        rows = db_session.scalars(select(DailyCostResource)).all()
        assert {r.resource_id for r in rows} == {VM_ID, SQL_ID}
        assert all(r.user_id == "user-1" for r in rows)

    @pytest.mark.asyncio
    async def test_sync_replaces_window(self, session_factory, db_session, add_subscription, add_costs):
        """Test stale rows inside the window are replaced, older rows kept."""
        add_subscription("user-1", "sub-1")
        add_costs("user-1", "sub-1", [(2, VM_ID, "99"), (30, VM_ID, "5")])
        provider = FakeBillingProvider({"sub-1": [billing_row(2, VM_ID, "11")]})

        await sync_costs(days=7, billing_provider=provider)

        costs = sorted(r.cost for r in db_session.scalars(select(DailyCostResource)).all())
        assert costs == [Decimal("5"), Decimal("11")]

    @pytest.mark.asyncio
    async def test_sync_costs_no_targets(self, session_factory):
        """Test cost sync with no registered subscriptions."""
        provider = FakeBillingProvider()

        result = await sync_costs(billing_provider=provider)

        assert result["processed"] == 0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_skips_target(self, session_factory, db_session, add_subscription):
        """Test a failing subscription does not stop the others."""
        add_subscription("user-1", "sub-bad")
        add_subscription("user-2", "sub-good")
        provider = FakeBillingProvider(
            {"sub-good": [billing_row(1, VM_ID, "3")]},
            failing={"sub-bad": ProviderError("Access denied", status_code=403)},
        )

        result = await sync_costs(billing_provider=provider)

        assert result["processed"] == 1
        assert result["errors"] == 1
        rows = db_session.scalars(select(DailyCostResource)).all()
        assert [r.user_id for r in rows] == ["user-2"]

    @pytest.mark.asyncio
    async def test_shape_error_skips_target(self, session_factory, add_subscription):
        """Test a malformed billing response fails only its target."""
        add_subscription("user-1", "sub-1")
        provider = FakeBillingProvider(failing={"sub-1": CostQueryShapeError("missing Cost column")})

        result = await sync_costs(billing_provider=provider)

        assert result["processed"] == 0
        assert result["errors"] == 1

    @pytest.mark.asyncio
    async def test_sync_job_recorded(self, session_factory, db_session, add_subscription):
        """Test every run leaves a completed SyncJob row."""
        add_subscription("user-1", "sub-1")

        await sync_costs(user_id="user-1", billing_provider=FakeBillingProvider())

        job = db_session.scalars(select(SyncJob)).one()
        assert job.job_type == "costs"
        assert job.user_id == "user-1"
        assert job.status == "completed"
        assert job.records_processed == 1


class TestBackfill:
    """Test suite for new-connection backfill."""

    @pytest.mark.asyncio
    async def test_backfill_rejects_non_positive_days(self, session_factory):
        with pytest.raises(ValueError):
            await run_backfill("user-1", cost_days=0)

    @pytest.mark.asyncio
    async def test_backfill_uses_at_least_seven_days(self, session_factory, add_subscription, today):
        """Test short backfills are widened to a week."""
        add_subscription("user-1", "sub-1")
        provider = FakeBillingProvider()

        result = await run_backfill("user-1", cost_days=3, billing_provider=provider)

        assert result["start_date"] == today - timedelta(days=6)
        assert provider.calls[0][1] == today - timedelta(days=6)

    @pytest.mark.asyncio
    async def test_backfill_generates_events(self, session_factory, db_session, add_subscription):
        """Test backfilled costs are evaluated right away."""
        add_subscription("user-1", "sub-1")
        rows = [billing_row(days_ago, VM_ID, "10") for days_ago in range(1, 10)]
        provider = FakeBillingProvider({"sub-1": rows})

        result = await run_backfill("user-1", cost_days=14, billing_provider=provider)

        assert result["processed"] == 1
        assert result["events_generated"] == 1
        event = db_session.scalars(select(CostEvent)).one()
        assert event.user_id == "user-1"
        assert event.spike_flag is False
