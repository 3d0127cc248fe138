"""Daily cost event generation.

For every user with recent cost rows, resolve the latest complete billing
date, evaluate it and replace the stored event for that date.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from costpilot.api.services.cost_store import CostRecordStore
from costpilot.core.config import get_settings
from costpilot.core.database import get_db_context
from costpilot.core.sync.tracking import track_sync_job
from costpilot.engine.baseline import BASELINE_DAYS
from costpilot.engine.billing_date import resolve_latest_complete_billing_date
from costpilot.engine.spike import evaluate_cost_day

logger = logging.getLogger(__name__)


@track_sync_job("events")
async def generate_cost_events(
    user_id: str | None = None,
    lookback_days: int | None = None,
    threshold: Decimal | None = None,
) -> dict:
    """Evaluate the latest complete billing day per user.

    All cost rows of a user are read before that user's event is written.

    Args:
        user_id: Restrict generation to one user
        lookback_days: How far back to look for users and billing dates
        threshold: Spike threshold override, defaults to settings.spike_threshold

    Returns:
        Dict with generated event count, error count and the
        (user id, evaluation) pairs that were flagged as spikes
    """
    settings = get_settings()
    lookback = max(2, lookback_days or settings.event_lookback_days)
    threshold = threshold if threshold is not None else settings.spike_threshold

    today = datetime.utcnow().date()
    start_date = today - timedelta(days=lookback - 1)

    with get_db_context() as db:
        user_ids = CostRecordStore(db).users_with_costs(start_date, today, user_id)
    logger.info(f"Generating cost events for {len(user_ids)} user(s)")

    generated = 0
    errors = 0
    spike_events = []

    for current_user in user_ids:
        try:
            with get_db_context() as db:
                store = CostRecordStore(db)
                points = store.cost_points(current_user, start_date, today)
                billing_date = resolve_latest_complete_billing_date(points, today)
                if billing_date is None:
                    logger.info(f"No complete billing day yet for user {current_user}")
                    continue

                # Include the baseline window even when the billing date lags
                baseline_start = billing_date - timedelta(days=BASELINE_DAYS)
                if baseline_start < start_date:
                    points = store.cost_points(current_user, baseline_start, today)

                evaluation = evaluate_cost_day(points, billing_date, threshold)
                store.replace_cost_event(current_user, evaluation)

            generated += 1
            if evaluation.spike_flag:
                spike_events.append((current_user, evaluation))
            logger.info(
                f"Cost event for user {current_user} on {billing_date}: "
                f"spike={evaluation.spike_flag}, confidence={evaluation.confidence.value}"
            )
        except Exception as e:
            errors += 1
            logger.error(f"Error generating cost event for user {current_user}: {e}", exc_info=True)

    logger.info(
        f"Generated {generated} cost event row(s), "
        f"{len(spike_events)} spike(s), {errors} errors"
    )
    return {"processed": generated, "errors": errors, "spike_events": spike_events}
