"""Shared fixtures for sync job tests.

Jobs run against the in-memory database from ``tests/conftest.py``. Azure
adapters are replaced by the fakes in ``fakes.py``.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from costpilot.models.cost import DailyCostResource
from costpilot.models.tenant import AzureConnection, Subscription


@pytest.fixture
def today():
    return datetime.utcnow().date()


@pytest.fixture
def add_subscription(db_session):
    """Register a connection with one subscription for a user."""

    def _add(user_id: str, subscription_id: str) -> None:
        connection = AzureConnection(
            id=str(uuid.uuid4()),
            user_id=user_id,
            tenant_id="tenant-123",
            client_id="client-123",
            client_secret_ref="TEST_CLIENT_SECRET",
        )
        db_session.add(connection)
        db_session.add(Subscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            connection_id=connection.id,
            subscription_id=subscription_id,
            display_name=f"Subscription {subscription_id}",
        ))
        db_session.commit()

    return _add


@pytest.fixture
def add_costs(db_session):
    """Insert daily cost rows given as (days ago, resource id, cost)."""

    def _add(user_id: str, subscription_id: str, rows) -> None:
        today = datetime.utcnow().date()
        for days_ago, resource_id, cost in rows:
            db_session.add(DailyCostResource(
                user_id=user_id,
                subscription_id=subscription_id,
                usage_date=today - timedelta(days=days_ago),
                resource_id=resource_id,
                cost=Decimal(str(cost)),
            ))
        db_session.commit()

    return _add
