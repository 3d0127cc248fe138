"""Shared fixtures for service tests."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from costpilot.models.cost import DailyCostResource

TODAY = date(2025, 3, 20)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def add_costs(db_session):
    """Insert daily cost rows given as (days before TODAY, resource id, cost[, currency])."""

    def _add(user_id: str, rows, subscription_id: str = "sub-1") -> None:
        for row in rows:
            days_ago, resource_id, cost = row[:3]
            currency = row[3] if len(row) > 3 else "USD"
            db_session.add(DailyCostResource(
                user_id=user_id,
                subscription_id=subscription_id,
                usage_date=TODAY - timedelta(days=days_ago),
                resource_id=resource_id,
                cost=Decimal(str(cost)),
                currency=currency,
            ))
        db_session.commit()

    return _add
