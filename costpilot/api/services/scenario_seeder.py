"""Synthetic scenario seeding for demos and local testing."""

import logging
from datetime import datetime

from costpilot.api.services.cost_store import CostRecordStore
from costpilot.core.database import get_db_context
from costpilot.core.sync.events import generate_cost_events
from costpilot.engine.scenarios import (
    DEFAULT_SUBSCRIPTION_ID,
    generate_scenario,
    normalize_scenario,
)
from costpilot.schemas.cost import ScenarioSeedRequest, ScenarioSeedResult

logger = logging.getLogger(__name__)


async def seed_scenario(user_id: str, request: ScenarioSeedRequest) -> ScenarioSeedResult:
    """Replace a user's data with a generated scenario and evaluate it.

    With ``clear_existing_data`` all of the user's cost rows and events are
    removed, otherwise only those inside the generated window. Waste findings
    are always removed.

    Raises:
        ScenarioValidationError: If the scenario name is unknown (nothing is written)
    """
    normalize_scenario(request.scenario)
    now = datetime.utcnow()

    with get_db_context() as db:
        store = CostRecordStore(db)
        subscription_id = store.latest_subscription_id(user_id) or DEFAULT_SUBSCRIPTION_ID

        dataset = generate_scenario(
            request.scenario,
            request.days,
            user_id,
            subscription_id=subscription_id,
            seed=request.seed,
            now=now,
        )

        store.delete_user_costs(
            user_id,
            from_date=None if request.clear_existing_data else dataset.from_date,
        )
        store.delete_user_findings(user_id)

        rows_inserted = store.upsert_daily_costs(
            {
                "user_id": user_id,
                "subscription_id": row.subscription_id,
                "usage_date": row.usage_date,
                "resource_id": row.resource_id,
                "cost": row.cost,
                "currency": row.currency,
            }
            for row in dataset.rows
        )
        findings_inserted = store.add_waste_findings(dataset.findings)

    logger.info(
        f"Seeded scenario {dataset.scenario} for user {user_id}: "
        f"{rows_inserted} cost rows, {findings_inserted} findings"
    )

    events = await generate_cost_events(user_id=user_id)

    return ScenarioSeedResult(
        scenario=dataset.scenario,
        days=dataset.days,
        daily_cost_rows_inserted=rows_inserted,
        waste_findings_inserted=findings_inserted,
        events_generated=events.get("processed", 0),
        from_date=dataset.from_date,
        to_date=dataset.to_date,
        note=dataset.note,
    )
