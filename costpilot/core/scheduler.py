"""Background job scheduler for the cost worker."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from costpilot.core.config import get_settings
from costpilot.core.notifications import notify_cost_spikes
from costpilot.core.sync import (
    generate_cost_events,
    refresh_waste_findings,
    run_backfill,
    sync_costs,
)

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def run_worker_cycle() -> dict:
    """Run one full worker pass: costs, events, waste, notifications.

    Each step runs even when the previous one failed.
    """
    logger.info(f"Starting worker cycle at {datetime.utcnow()}")
    summary = {"subscriptions": 0, "events": 0, "findings": 0, "notifications": 0}
    spike_events = []

    try:
        result = await sync_costs()
        summary["subscriptions"] = result["processed"]
    except Exception as e:
        logger.error(f"Cost sync step failed: {e}", exc_info=True)

    try:
        result = await generate_cost_events()
        summary["events"] = result["processed"]
        spike_events = result["spike_events"]
    except Exception as e:
        logger.error(f"Event generation step failed: {e}", exc_info=True)

    try:
        result = await refresh_waste_findings()
        summary["findings"] = result["processed"]
    except Exception as e:
        logger.error(f"Waste refresh step failed: {e}", exc_info=True)

    try:
        summary["notifications"] = await notify_cost_spikes(spike_events)
    except Exception as e:
        logger.error(f"Spike notification step failed: {e}", exc_info=True)

    logger.info(
        f"Worker run complete. Subscriptions processed: {summary['subscriptions']}. "
        f"Cost events generated: {summary['events']}. "
        f"Waste findings: {summary['findings']}. "
        f"Notifications sent: {summary['notifications']}."
    )
    return summary


def init_scheduler() -> AsyncIOScheduler:
    """Initialize and configure the background scheduler."""
    global scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        run_worker_cycle,
        trigger=IntervalTrigger(hours=settings.worker_run_interval_hours),
        id="worker_cycle",
        name="Cost Worker Cycle",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        f"Scheduler initialized. Run interval: {settings.worker_run_interval_hours} hour(s)"
    )
    return scheduler


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the scheduler instance."""
    return scheduler


async def trigger_manual_run(job_type: str) -> bool:
    """Run a single job or the full cycle on demand."""
    jobs = {
        "costs": sync_costs,
        "events": generate_cost_events,
        "waste": refresh_waste_findings,
        "all": run_worker_cycle,
    }

    if job_type not in jobs:
        return False

    await jobs[job_type]()
    return True


async def trigger_user_backfill(user_id: str, cost_days: int | None = None) -> dict:
    """Backfill a single user, e.g. right after a connection is registered.

    Callers must not run this concurrently with a scheduled cycle for the
    same user.
    """
    logger.info(f"Connect-triggered backfill for user {user_id}")
    return await run_backfill(user_id, cost_days)
