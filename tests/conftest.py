"""
Pytest configuration for Companion tests

Provides fixtures shared across unit and integration tests
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from companion.deadlines.repository import InMemoryDeadlineStore, SQLiteDeadlineRepository
from companion.infrastructure.database import Database
from companion.observability.telemetry import reset_telemetry

NOW = datetime(2026, 2, 20, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_telemetry():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def memory_store() -> InMemoryDeadlineStore:
    return InMemoryDeadlineStore()


@pytest.fixture
def database():
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def sqlite_store(database) -> SQLiteDeadlineRepository:
    return SQLiteDeadlineRepository(database)
