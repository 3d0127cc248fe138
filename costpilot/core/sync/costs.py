"""Cost data synchronization module."""

import logging
from datetime import datetime, timedelta

from azure.core.exceptions import HttpResponseError

from costpilot.api.services.azure_client import AzureBillingProvider, ScanTarget
from costpilot.api.services.cost_store import CostRecordStore
from costpilot.core.config import get_settings
from costpilot.core.database import get_db_context
from costpilot.core.exceptions import CostQueryShapeError, ProviderError
from costpilot.core.sync.events import generate_cost_events
from costpilot.core.sync.tracking import track_sync_job

logger = logging.getLogger(__name__)

MIN_BACKFILL_DAYS = 7


@track_sync_job("costs")
async def sync_costs(
    days: int | None = None,
    user_id: str | None = None,
    billing_provider: AzureBillingProvider | None = None,
) -> dict:
    """Sync daily per-resource costs for every subscription target.

    Queries the billing provider for the last ``days`` days (today included)
    and replaces the stored window for each (user, subscription). Each
    target commits on its own, so a failing or cancelled run keeps the
    targets already written.

    Args:
        days: Window length, defaults to settings.cost_sync_days
        user_id: Restrict the sync to one user
        billing_provider: Billing adapter, defaults to Azure Cost Management

    Returns:
        Dict with processed target count, error count and the window
    """
    settings = get_settings()
    window_days = max(1, days if days is not None else settings.cost_sync_days)
    end_date = datetime.utcnow().date()
    start_date = end_date - timedelta(days=window_days - 1)
    provider = billing_provider or AzureBillingProvider()

    logger.info(f"Starting cost sync for {start_date}..{end_date}")

    with get_db_context() as db:
        targets = CostRecordStore(db).list_scan_targets(user_id)
    logger.info(f"Found {len(targets)} subscription targets to sync")

    processed = 0
    errors = 0

    for target in targets:
        try:
            costs = await provider.query_daily_costs(target, start_date, end_date)
            rows = [
                {
                    "user_id": target.user_id,
                    "subscription_id": target.subscription_id,
                    "usage_date": cost.usage_date,
                    "resource_id": cost.resource_id,
                    "cost": cost.cost,
                    "currency": cost.currency,
                }
                for cost in costs
            ]

            with get_db_context() as db:
                inserted = CostRecordStore(db).replace_daily_costs(
                    target.user_id,
                    target.subscription_id,
                    start_date,
                    end_date,
                    rows,
                )

            processed += 1
            logger.info(
                f"Successfully synced {inserted} cost records "
                f"for subscription {_short(target)}"
            )

        except CostQueryShapeError as e:
            errors += 1
            logger.error(f"Unexpected cost data shape for subscription {_short(target)}: {e}")
        except (ProviderError, HttpResponseError) as e:
            errors += 1
            logger.error(f"Cost query failed for subscription {_short(target)}: {e}")
        except Exception as e:
            errors += 1
            logger.error(
                f"Error syncing costs for subscription {_short(target)}: {e}",
                exc_info=True
            )

    logger.info(
        f"Cost sync completed: {processed} subscription(s) synced, "
        f"{errors} errors encountered"
    )
    return {
        "processed": processed,
        "errors": errors,
        "start_date": start_date,
        "end_date": end_date,
    }


async def run_backfill(
    user_id: str,
    cost_days: int | None = None,
    billing_provider: AzureBillingProvider | None = None,
) -> dict:
    """Sync at least 7 days of costs for one user, then regenerate events.

    Used right after a user registers a new connection.

    Raises:
        ValueError: If cost_days is not a positive number
    """
    settings = get_settings()
    if cost_days is None:
        cost_days = settings.backfill_days
    if cost_days <= 0:
        raise ValueError(f"Backfill days must be positive, got {cost_days}")

    days = max(MIN_BACKFILL_DAYS, cost_days)
    logger.info(f"Starting {days}-day backfill for user {user_id}")

    sync_result = await sync_costs(days=days, user_id=user_id, billing_provider=billing_provider)
    event_result = await generate_cost_events(user_id=user_id)

    return {
        "processed": sync_result["processed"],
        "errors": sync_result["errors"],
        "events_generated": event_result["processed"],
        "start_date": sync_result["start_date"],
        "end_date": sync_result["end_date"],
    }


def _short(target: ScanTarget) -> str:
    return f"{target.subscription_id[:8]}..."
