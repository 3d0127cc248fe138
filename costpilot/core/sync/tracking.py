"""Sync job run tracking.

Every job run leaves a ``SyncJob`` row with its outcome so failed and slow
runs can be inspected after the fact.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import Any, TypeVar

from costpilot.core.database import get_db_context
from costpilot.models.sync import SyncJob

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _start_job(job_type: str, user_id: str | None) -> int | None:
    try:
        with get_db_context() as db:
            job = SyncJob(job_type=job_type, user_id=user_id, status="running")
            db.add(job)
            db.flush()
            return job.id
    except Exception as e:
        logger.warning(f"Could not record start of {job_type} job: {e}")
        return None


def _finish_job(job_id: int | None, status: str, result: Any = None, error: str | None = None) -> None:
    if job_id is None:
        return
    try:
        with get_db_context() as db:
            job = db.get(SyncJob, job_id)
            if job is None:
                return
            job.status = status
            job.completed_at = datetime.utcnow()
            if isinstance(result, dict):
                job.records_processed = result.get("processed", 0)
                job.errors_count = result.get("errors", 0)
            if error:
                job.error_message = error[:2000]
                job.errors_count = max(job.errors_count or 0, 1)
    except Exception as e:
        logger.warning(f"Could not record completion of job {job_id}: {e}")


def track_sync_job(job_type: str):
    """Decorator that records a SyncJob row around an async job.

    The job's ``user_id`` keyword argument, when given, is stored on the row.
    A dict result with ``processed`` and ``errors`` keys fills the counters.

    Usage:
        @track_sync_job("costs")
        async def sync_costs(days=None, user_id=None):
            ...
            return {"processed": 3, "errors": 0}
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            job_id = _start_job(job_type, kwargs.get("user_id"))
            try:
                result = await func(*args, **kwargs)
            except BaseException as e:
                _finish_job(job_id, "failed", error=str(e) or type(e).__name__)
                raise
            _finish_job(job_id, "completed", result=result)
            return result

        return wrapper

    return decorator
