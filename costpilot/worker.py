"""Cost worker entry point.

Run with ``python -m costpilot.worker``. Initializes the database, runs one
cycle immediately and then keeps the interval scheduler alive until
interrupted.
"""

import asyncio
import logging

from costpilot.core.config import get_settings
from costpilot.core.database import init_db
from costpilot.core.scheduler import init_scheduler, run_worker_cycle

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Starting {settings.app_name} worker v{settings.app_version}")
    init_db()

    scheduler = init_scheduler()
    scheduler.start()
    try:
        await run_worker_cycle()
        # Keep the loop alive for scheduled runs
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Worker stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
