"""Tests for cost event generation."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from costpilot.core.sync.events import generate_cost_events
from costpilot.models.cost import CostEvent

from tests.factories import DISK_ID, IP_ID, SQL_ID, SUB, VM_ID


def steady(days, resource_id, cost="10"):
    return [(days_ago, resource_id, cost) for days_ago in range(1, days + 1)]


class TestGenerateCostEvents:
    """Test suite for event generation."""

    @pytest.mark.asyncio
    async def test_no_costs_no_events(self, session_factory, db_session):
        result = await generate_cost_events()

        assert result["processed"] == 0
        assert result["spike_events"] == []
        assert db_session.scalars(select(CostEvent)).all() == []

    @pytest.mark.asyncio
    async def test_spike_event(self, session_factory, db_session, add_costs, today):
        """Test a spike on the latest complete day is stored and returned."""
        add_costs("user-1", "sub-1", steady(9, VM_ID) + [(1, SQL_ID, "25")])

        result = await generate_cost_events()

        assert result["processed"] == 1
        [(user_id, evaluation)] = result["spike_events"]
        assert user_id == "user-1"
        assert evaluation.event_date == today - timedelta(days=1)

        event = db_session.scalars(select(CostEvent)).one()
        assert event.spike_flag is True
        assert event.confidence == "High"
        assert event.top_resource_name == "orders"
        assert event.difference == Decimal("25")

    @pytest.mark.asyncio
    async def test_partial_yesterday_evaluates_day_before(self, session_factory, db_session, add_costs, today):
        """Test a partially ingested yesterday is skipped."""
        rows = [
            (days_ago, resource_id, "5")
            for days_ago in range(2, 10)
            for resource_id in (VM_ID, SQL_ID, DISK_ID, IP_ID, f"{SUB}/Microsoft.Web/sites/app-01")
        ]
        add_costs("user-1", "sub-1", rows + [(1, VM_ID, "1")])

        await generate_cost_events()

        event = db_session.scalars(select(CostEvent)).one()
        assert event.event_date == today - timedelta(days=2)

    @pytest.mark.asyncio
    async def test_rerun_replaces_event(self, session_factory, db_session, add_costs):
        """Test generating twice keeps a single event per user and date."""
        add_costs("user-1", "sub-1", steady(9, VM_ID))

        await generate_cost_events()
        await generate_cost_events()

        assert len(db_session.scalars(select(CostEvent)).all()) == 1

    @pytest.mark.asyncio
    async def test_users_are_independent(self, session_factory, db_session, add_costs):
        add_costs("user-1", "sub-1", steady(9, VM_ID))
        add_costs("user-2", "sub-2", steady(9, SQL_ID) + [(1, DISK_ID, "40")])

        result = await generate_cost_events()

        assert result["processed"] == 2
        assert [u for u, _ in result["spike_events"]] == ["user-2"]

    @pytest.mark.asyncio
    async def test_user_filter(self, session_factory, db_session, add_costs):
        add_costs("user-1", "sub-1", steady(9, VM_ID))
        add_costs("user-2", "sub-2", steady(9, VM_ID))

        await generate_cost_events(user_id="user-2")

        events = db_session.scalars(select(CostEvent)).all()
        assert [e.user_id for e in events] == ["user-2"]
