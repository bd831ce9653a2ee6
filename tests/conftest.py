"""
Pytest Configuration and Fixtures for the Season Ranking Tests
==============================================================

Purpose
-------
Centralized fixtures for the ranking test suite.

Responsibilities
----------------
- Temporary SQLite database (aiosqlite) per integration test
- Fully wired ServiceContainer on top of that database
- Seeding helpers for profiles and seasons
- Mock collaborators for unit tests

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests run the real DatabaseService against a fresh
  ``sqlite+aiosqlite`` file under ``tmp_path``; schema via Base.metadata
- Retry backoff and jitter are zeroed so contention tests run instantly
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncGenerator, Optional, Sequence

import pytest
import pytest_asyncio

from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer
from src.modules.profile.store import SqlUserProfileStore

logger = get_logger(__name__)

# A Wednesday; the window is Monday 2025-03-03 to Monday 2025-03-10.
FIXED_NOW = datetime(2025, 3, 5, 12, 30, tzinfo=timezone.utc)
FIXED_SEASON_ID = "2025-03-03_2025-03-10"


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def ranking_config(monkeypatch, tmp_path):
    """
    Point Config at a throwaway SQLite file and make retries instant.

    Scope: function
    """
    db_path = tmp_path / "ranking.db"
    monkeypatch.setattr(Config, "DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setattr(Config, "TESTING", True)
    monkeypatch.setattr(Config, "DATABASE_ECHO", False)
    monkeypatch.setattr(Config, "RANKING_GROUP_CAPACITY", 20)
    monkeypatch.setattr(Config, "RANKING_SNAPSHOT_SIZE", 100)
    monkeypatch.setattr(Config, "GROUP_ASSIGN_MAX_ATTEMPTS", 5)
    monkeypatch.setattr(Config, "GROUP_ASSIGN_INITIAL_BACKOFF_MS", 0)
    monkeypatch.setattr(Config, "GROUP_ASSIGN_MAX_BACKOFF_MS", 0)
    monkeypatch.setattr(Config, "GROUP_ASSIGN_JITTER_MS", 0)
    return Config


@pytest_asyncio.fixture
async def database(ranking_config) -> AsyncGenerator[type[DatabaseService], None]:
    """
    Initialized DatabaseService with the ranking schema created.

    Scope: function (fresh database file per test)
    """
    await DatabaseService.initialize()
    await DatabaseService.create_schema()
    try:
        yield DatabaseService
    finally:
        await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def container(database) -> AsyncGenerator[ServiceContainer, None]:
    """
    ServiceContainer wired against the test database.

    Scope: function
    """
    services = ServiceContainer(logger=get_logger("tests.container"))
    await services.initialize()
    yield services
    await services.shutdown()


@pytest.fixture
def profiles(container) -> SqlUserProfileStore:
    return container.profiles


@pytest_asyncio.fixture
async def season(container):
    """The active season for FIXED_NOW."""
    return await container.seasons.get_or_create_current_season(FIXED_NOW)


# ============================================================================
# SEEDING HELPERS
# ============================================================================


@pytest.fixture
def make_profile(profiles):
    """
    Factory for user profiles.

    Usage:
        await make_profile("u1", username="alice", league=3, friends=["u2"])
    """

    async def _make(
        user_id: str,
        *,
        username: Optional[str] = None,
        name: Optional[str] = None,
        league: int = 1,
        friends: Optional[Sequence[str]] = None,
    ):
        return await profiles.upsert_profile(
            user_id,
            username=username if username is not None else f"user-{user_id}",
            name=name,
            league=league,
            friends=friends,
        )

    return _make


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_logger(mocker):
    return mocker.MagicMock()


@pytest.fixture
def mock_services(mocker):
    """
    Mocked domain services for RankingOperations unit tests.

    Scope: function
    """
    league = mocker.MagicMock()
    league.get_league_info = mocker.MagicMock()
    league.get_all_leagues_info = mocker.MagicMock()
    league.get_user_group = mocker.AsyncMock()
    league.update_user_league = mocker.AsyncMock()
    league.assign_user_to_group = mocker.AsyncMock()

    points = mocker.MagicMock()
    points.submit = mocker.AsyncMock(return_value={"success": True})

    ranking = mocker.MagicMock()
    ranking.get_leaderboard = mocker.AsyncMock()
    ranking.get_user_ranking = mocker.AsyncMock()
    ranking.get_following_rankings = mocker.AsyncMock()

    seasons = mocker.MagicMock()
    seasons.get_current_season = mocker.AsyncMock(return_value=None)
    seasons.roll_over = mocker.AsyncMock()

    reconciliation = mocker.MagicMock()
    reconciliation.repair_season = mocker.AsyncMock()

    return {
        "league": league,
        "points": points,
        "ranking": ranking,
        "seasons": seasons,
        "reconciliation": reconciliation,
    }
