"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest

from tallyboard.coordination import ConcurrencyCoordinator, ProcessedEventCache
from tallyboard.db import Base, DBRowStore, MemoryRowStore, get_engine, make_session_factory
from tallyboard.services import ScoringService, load_schedule


# Eight-game bracket across two courts:
#   Games 1-4 are first round, 5 and 6 are semifinals,
#   7 is the third-place game and 8 is the final.
SCHEDULE_ROWS = [
    {"court": "A", "game_number": "1", "top_team": "Red", "bottom_team": "Blue",
     "start_time": "09:00", "winner_next": "5", "winner_slot": "top",
     "loser_next": "", "loser_slot": ""},
    {"court": "B", "game_number": "2", "top_team": "Green", "bottom_team": "Yellow",
     "start_time": "09:00", "winner_next": "5", "winner_slot": "bottom",
     "loser_next": "", "loser_slot": ""},
    {"court": "A", "game_number": "3", "top_team": "Orange", "bottom_team": "Purple",
     "start_time": "10:00", "winner_next": "6", "winner_slot": "top",
     "loser_next": "", "loser_slot": ""},
    {"court": "B", "game_number": "4", "top_team": "Black", "bottom_team": "White",
     "start_time": "10:00", "winner_next": "6", "winner_slot": "bottom",
     "loser_next": "", "loser_slot": ""},
    {"court": "A", "game_number": "5", "top_team": "", "bottom_team": "",
     "start_time": "11:00", "winner_next": "8", "winner_slot": "top",
     "loser_next": "7", "loser_slot": "top"},
    {"court": "B", "game_number": "6", "top_team": "", "bottom_team": "",
     "start_time": "11:00", "winner_next": "8", "winner_slot": "bottom",
     "loser_next": "7", "loser_slot": "bottom"},
    {"court": "A", "game_number": "7", "top_team": "", "bottom_team": "",
     "start_time": "13:00", "winner_next": "", "winner_slot": "",
     "loser_next": "", "loser_slot": ""},
    {"court": "B", "game_number": "8", "top_team": "", "bottom_team": "",
     "start_time": "13:00", "winner_next": "", "winner_slot": "",
     "loser_next": "", "loser_slot": ""},
]


def make_service(store, lock_timeout_seconds: float = 0.2) -> ScoringService:
    """Service with a short lock timeout so Busy tests finish quickly."""
    coordinator = ConcurrencyCoordinator(
        cache=ProcessedEventCache(ttl_seconds=60.0),
        lock_timeout_seconds=lock_timeout_seconds,
    )
    return ScoringService(store, max_innings=6, coordinator=coordinator)


@pytest.fixture
def schedule_rows():
    """Fresh copy of the sample bracket rows."""
    return [dict(row) for row in SCHEDULE_ROWS]


@pytest.fixture
def store():
    return MemoryRowStore()


@pytest.fixture
def service(store):
    """Scoring service over an empty in-memory store."""
    return make_service(store)


@pytest.fixture
def bracket_service(service, schedule_rows):
    """Scoring service with the sample bracket pre-registered."""
    stats = load_schedule(service.registry, schedule_rows)
    assert stats.warnings == []
    return service


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features.
    """
    engine = get_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_store(test_engine):
    """Database-backed row store on the in-memory engine."""
    return DBRowStore(make_session_factory(test_engine))
