"""Shared test fixtures."""

import os

# Configure settings before any costpilot module builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import patch

from costpilot.core.database import Base


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    from costpilot import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Route ``get_db_context`` to the test engine."""
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    with patch("costpilot.core.database.SessionLocal", factory):
        yield factory


@pytest.fixture
def db_session(session_factory):
    """Plain session for arranging and asserting test data."""
    session = session_factory()
    yield session
    session.close()
