"""
Integration Tests for SeasonService
===================================

Test Coverage
-------------
- Lazy creation of the current window
- Rollover: snapshot of the global top-N, close, open the next window
- DatabaseService basics used by every season path
"""

import logging
from datetime import timedelta

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from src.core.database.service import DatabaseService
from src.database.models import Season, UserSeasonPoints
from src.modules.shared.exceptions import (
    DatabaseNotInitializedError,
    NoActiveSeasonError,
    ValidationError,
)
from tests.conftest import FIXED_NOW, FIXED_SEASON_ID


@pytest.mark.integration
@pytest.mark.database
class TestSeasonResolution:
    async def test_creates_window_for_now(self, container):
        season = await container.seasons.get_or_create_current_season(FIXED_NOW)

        assert season.season_id == FIXED_SEASON_ID
        assert season.status == "active"

    async def test_idempotent(self, container):
        first = await container.seasons.get_or_create_current_season(FIXED_NOW)
        second = await container.seasons.get_or_create_current_season(
            FIXED_NOW + timedelta(days=1)
        )

        assert first.season_id == second.season_id

    async def test_read_paths_never_create(self, container):
        with pytest.raises(NoActiveSeasonError):
            await container.seasons.require_current_season_id()

        assert await container.seasons.get_current_season() is None

    async def test_explicit_id_is_validated(self, container):
        with pytest.raises(ValidationError):
            await container.seasons.require_current_season_id("last-week")

    async def test_explicit_id_used_without_lookup(self, container):
        assert (
            await container.seasons.require_current_season_id("2024-12-30_2025-01-06")
            == "2024-12-30_2025-01-06"
        )


@pytest.mark.integration
@pytest.mark.database
class TestRollover:
    """Closing a season and opening the next window."""

    async def test_rollover_snapshots_and_opens_next(self, container, season):
        # Arrange
        for user_id, points in [("a", 5), ("b", 50), ("c", 20)]:
            await container.points.submit(user_id, points)

        # Act
        result = await container.seasons.roll_over(FIXED_NOW + timedelta(days=6))

        # Assert
        assert result == {
            "success": True,
            "previousSeasonId": FIXED_SEASON_ID,
            "nextSeasonId": "2025-03-10_2025-03-17",
            "snapshotSize": 3,
        }

        snapshot = await container.seasons.get_season_snapshot(FIXED_SEASON_ID)
        assert [(row["userId"], row["position"]) for row in snapshot] == [
            ("b", 1),
            ("c", 2),
            ("a", 3),
        ]

        current = await container.seasons.get_current_season()
        assert current.season_id == "2025-03-10_2025-03-17"

        async with DatabaseService.get_session() as session:
            closed = await session.get(Season, FIXED_SEASON_ID)
        assert closed.status == "closed"
        assert closed.rolled_at is not None

    async def test_snapshot_is_capped(self, container, season, monkeypatch):
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "RANKING_SNAPSHOT_SIZE", 2)
        for index in range(4):
            await container.points.submit(f"u{index}", index)

        result = await container.seasons.roll_over(FIXED_NOW + timedelta(days=7))

        assert result["snapshotSize"] == 2

    async def test_new_season_starts_empty(self, container, season):
        await container.points.submit("a", 5)
        await container.seasons.roll_over(FIXED_NOW + timedelta(days=7))

        assert await container.ranking.get_user_ranking("a") is None

        async with DatabaseService.get_session() as session:
            rows = (await session.execute(select(UserSeasonPoints))).scalars().all()
        assert [row.season_id for row in rows] == [FIXED_SEASON_ID]

    async def test_rollover_without_active_season(self, container):
        with pytest.raises(NoActiveSeasonError):
            await container.seasons.roll_over(FIXED_NOW)


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseService:
    async def test_health_check(self, database):
        assert await DatabaseService.health_check() is True

    async def test_transaction_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                session.add(
                    UserSeasonPoints(season_id=FIXED_SEASON_ID, user_id="u1", league=1, points=1.0)
                )
                await session.flush()
                raise RuntimeError("abort")

        async with DatabaseService.get_session() as session:
            count = (await session.execute(text("SELECT COUNT(*) FROM user_season_points"))).scalar()
        assert count == 0

    async def test_constraint_conflict_logged_below_error(self, database, caplog):
        # Arrange
        caplog.set_level(logging.DEBUG, logger="src.core.database.service")
        async with DatabaseService.get_transaction() as session:
            session.add(
                UserSeasonPoints(season_id=FIXED_SEASON_ID, user_id="u1", league=1, points=1.0)
            )

        # Act
        with pytest.raises(IntegrityError):
            async with DatabaseService.get_transaction() as session:
                session.add(
                    UserSeasonPoints(season_id=FIXED_SEASON_ID, user_id="u1", league=2, points=5.0)
                )

        # Assert
        records = [r for r in caplog.records if r.name == "src.core.database.service"]
        assert not [r for r in records if r.levelno >= logging.ERROR]
        assert any(r.getMessage() == "Transaction rolled back on a constraint conflict" for r in records)
        async with DatabaseService.get_session() as session:
            ledger = await session.get(UserSeasonPoints, (FIXED_SEASON_ID, "u1"))
        assert (ledger.league, ledger.points) == (1, 1.0)

    async def test_session_requires_initialization(self, ranking_config):
        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass
