"""
Shared fixtures: a fixed clock and an in-memory relational store.
"""

import pytest

from core.clock import MockClock
from database.engine import create_all_tables, create_database_engine, create_session_factory
from database.repository import RelationalStore
from tests.helpers import FIXED_NOW


@pytest.fixture
def mock_clock():
    """Clock pinned to FIXED_NOW."""
    return MockClock(FIXED_NOW)


@pytest.fixture
async def store():
    """RelationalStore over a fresh in-memory SQLite database."""
    engine = create_database_engine("sqlite+aiosqlite://")
    await create_all_tables(engine)
    yield RelationalStore(create_session_factory(engine))
    await engine.dispose()
