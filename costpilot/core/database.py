"""Database configuration and session management.

Features:
- Connection pooling for non-SQLite databases
- Slow query logging
- Indexes for the engine's common query patterns
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Index, create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from costpilot.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

if settings.database_url.startswith("sqlite:///") and ":memory:" not in settings.database_url:
    # Ensure data directory exists
    db_path = settings.database_url.replace("sqlite:///", "")
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine_args: dict[str, Any] = {
    "echo": settings.debug and settings.enable_query_logging,
}

if settings.database_url.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
else:
    engine_args.update({
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": settings.database_pool_timeout,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    })

engine = create_engine(settings.database_url, **engine_args)


@event.listens_for(engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Capture query start time for performance monitoring."""
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine, "after_cursor_execute")
def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log slow queries based on configured threshold."""
    start_time = conn.info["query_start_time"].pop()
    total_time = (time.perf_counter() - start_time) * 1000

    if total_time > settings.slow_query_threshold_ms:
        logger.warning(
            f"Slow query detected ({total_time:.2f}ms): {statement[:200]}..."
        )


if settings.database_url.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite pragmas for performance."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions (for background jobs)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    # Import models to register them with Base
    from costpilot import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    _create_indexes()


def _create_indexes() -> None:
    """Create database indexes for common query patterns."""
    indexes = [
        Index("idx_daily_costs_user_date", "daily_cost_resources", "user_id", "usage_date"),
        Index("idx_daily_costs_resource", "daily_cost_resources", "resource_id"),
        Index("idx_cost_events_user_date", "cost_events", "user_id", "event_date"),
        Index("idx_waste_findings_user_type", "waste_findings", "user_id", "finding_type"),
        Index("idx_sync_jobs_status", "sync_jobs", "status"),
    ]

    with engine.connect() as conn:
        for index in indexes:
            try:
                index.create(conn, checkfirst=True)
            except Exception as e:
                logger.debug(f"Index creation skipped (may already exist): {e}")
        conn.commit()


def bulk_insert_chunks(
    db: Session,
    model_class,
    items: list[dict],
    batch_size: int | None = None,
) -> int:
    """Perform bulk insert in chunks to avoid memory issues.

    Args:
        db: Database session
        model_class: SQLAlchemy model class
        items: List of dictionaries to insert
        batch_size: Number of items per batch

    Returns:
        Total number of items inserted
    """
    if batch_size is None:
        batch_size = settings.bulk_batch_size

    total_inserted = 0

    for i in range(0, len(items), batch_size):
        batch = items[i:i + batch_size]
        db.bulk_insert_mappings(model_class, batch)
        total_inserted += len(batch)
        logger.debug(f"Bulk inserted {len(batch)} {model_class.__name__} records")

    return total_inserted
