"""
Integration Tests for GroupAllocator
====================================

Test Coverage
-------------
- First-fit scan over groups of a (season, league), ascending id
- Capacity invariant and is_full flag after every admission
- Duplicate admission within a season
- Lost admission race: GroupFullError, and recovery under retry
- Concurrent first admissions into an empty league share groups

Testing Strategy
----------------
- Real DatabaseService on a temporary SQLite file per test
"""

import asyncio

import pytest
from sqlalchemy import func, select

from src.core.database.service import DatabaseService
from src.database.models import GroupMembership, LeagueGroup, UserSeasonPoints
from src.modules.shared.exceptions import (
    GroupFullError,
    InvalidOperationError,
    LeagueOutOfRangeError,
)


async def _groups(season_id, league_number):
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            select(LeagueGroup)
            .where(
                LeagueGroup.season_id == season_id,
                LeagueGroup.league_number == league_number,
            )
            .order_by(LeagueGroup.id)
        )
        return list(result.scalars().all())


async def _membership_counts():
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            select(GroupMembership.group_id, func.count(GroupMembership.id)).group_by(
                GroupMembership.group_id
            )
        )
        return dict(result.all())


# ============================================================================
# FIRST-FIT ALLOCATION
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestFirstFitAllocation:
    """Groups fill to capacity before a new one is opened."""

    async def test_twenty_one_users_fill_two_groups(self, container, season):
        # Arrange
        allocator = container.allocator
        season_id = season.season_id

        # Act
        assigned = [
            await allocator.assign(season_id, 3, f"u{index}") for index in range(1, 22)
        ]

        # Assert
        groups = await _groups(season_id, 3)
        assert len(groups) == 2
        first, second = groups
        assert (first.current_count, first.capacity, first.is_full) == (20, 20, True)
        assert (second.current_count, second.is_full) == (1, False)
        assert assigned[:20] == [first.id] * 20
        assert assigned[20] == second.id

    async def test_is_full_tracks_count_after_every_admission(self, container, season, monkeypatch):
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "RANKING_GROUP_CAPACITY", 3)

        for index in range(7):
            await container.allocator.assign(season.season_id, 1, f"user-{index}")

            for group in await _groups(season.season_id, 1):
                assert group.current_count <= group.capacity
                assert group.is_full == (group.current_count >= group.capacity)

        counts = await _membership_counts()
        groups = await _groups(season.season_id, 1)
        assert [group.current_count for group in groups] == [3, 3, 1]
        assert [counts[group.id] for group in groups] == [3, 3, 1]

    async def test_leagues_do_not_share_groups(self, container, season):
        g1 = await container.allocator.assign(season.season_id, 1, "a")
        g2 = await container.allocator.assign(season.season_id, 2, "b")

        assert g1 != g2

    async def test_admission_writes_ledger_and_profile(self, container, season, make_profile):
        # Arrange
        await make_profile("u1", league=5)

        # Act
        group_id = await container.allocator.assign(season.season_id, 5, "u1", 12.0)

        # Assert
        async with DatabaseService.get_session() as session:
            ledger = await session.get(UserSeasonPoints, (season.season_id, "u1"))
        assert ledger.group_id == group_id
        assert ledger.league == 5
        assert ledger.points == 12.0

        profile = await container.profiles.get_profile("u1")
        assert profile.current_group_id == group_id

    async def test_out_of_range_league(self, container, season):
        with pytest.raises(LeagueOutOfRangeError):
            await container.allocator.assign(season.season_id, 16, "u1")


# ============================================================================
# CONFLICTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestAdmissionConflicts:
    """Duplicate membership and lost races."""

    async def test_second_assign_same_season_rejected(self, container, season):
        await container.allocator.assign(season.season_id, 1, "u1")

        with pytest.raises(InvalidOperationError):
            await container.allocator.assign(season.season_id, 4, "u1")

        counts = await _membership_counts()
        assert sum(counts.values()) == 1

    async def test_stale_scan_raises_group_full(self, container, season, mocker, monkeypatch):
        # Arrange
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "RANKING_GROUP_CAPACITY", 2)
        allocator = container.allocator
        full_group = await allocator.assign(season.season_id, 1, "a")
        await allocator.assign(season.season_id, 1, "b")
        mocker.patch.object(allocator, "find_open_group", return_value=full_group)

        # Act / Assert
        with pytest.raises(GroupFullError) as exc_info:
            await allocator.assign(season.season_id, 1, "c")

        assert exc_info.value.group_id == full_group
        groups = await _groups(season.season_id, 1)
        assert groups[0].current_count == 2

    async def test_retry_recovers_from_lost_race(self, container, season, mocker, monkeypatch):
        # Arrange
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "RANKING_GROUP_CAPACITY", 2)
        allocator = container.allocator
        full_group = await allocator.assign(season.season_id, 1, "a")
        await allocator.assign(season.season_id, 1, "b")
        scan = mocker.patch.object(
            allocator, "find_open_group", side_effect=[full_group, None, None]
        )

        # Act
        group_id = await allocator.assign_with_retry(season.season_id, 1, "c")

        # Assert
        assert group_id != full_group
        assert scan.await_count == 3
        groups = await _groups(season.season_id, 1)
        assert [group.current_count for group in groups] == [2, 1]

    async def test_retry_exhaustion_surfaces_group_full(self, container, season, mocker, monkeypatch):
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "RANKING_GROUP_CAPACITY", 1)
        allocator = container.allocator
        full_group = await allocator.assign(season.season_id, 1, "a")
        mocker.patch.object(allocator, "find_open_group", return_value=full_group)

        with pytest.raises(GroupFullError):
            await allocator.assign_with_retry(season.season_id, 1, "b")

        assert allocator.find_open_group.await_count == Config.GROUP_ASSIGN_MAX_ATTEMPTS


# ============================================================================
# CONCURRENT ADMISSION
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestConcurrentAdmission:
    """Simultaneous first admissions into a (season, league) with no groups."""

    async def test_burst_into_empty_league_shares_groups(self, container, season, monkeypatch):
        # Arrange
        from src.core.config.config import Config

        monkeypatch.setattr(Config, "GROUP_ASSIGN_MAX_ATTEMPTS", 25)
        monkeypatch.setattr(Config, "GROUP_ASSIGN_INITIAL_BACKOFF_MS", 5)
        monkeypatch.setattr(Config, "GROUP_ASSIGN_MAX_BACKOFF_MS", 50)
        monkeypatch.setattr(Config, "GROUP_ASSIGN_JITTER_MS", 10)
        allocator = container.allocator
        user_ids = [f"burst-{index}" for index in range(25)]

        # Act
        assigned = await asyncio.gather(
            *(allocator.assign_with_retry(season.season_id, 4, user_id) for user_id in user_ids)
        )

        # Assert
        counts = await _membership_counts()
        assert sum(counts.values()) == 25
        assert max(counts.values()) > 1
        assert len(set(assigned)) < 25

        for group in await _groups(season.season_id, 4):
            assert group.current_count <= group.capacity
            assert group.current_count == counts.get(group.id, 0)
            assert group.is_full == (group.current_count >= group.capacity)
