"""
Integration Tests for GroupReconciliationService.
"""

import pytest
from sqlalchemy import select, update

from src.core.database.service import DatabaseService
from src.database.models import GroupMembership, LeagueGroup, UserSeasonPoints


@pytest.mark.integration
@pytest.mark.database
class TestRepairGroupCounts:
    async def test_drifted_count_is_recomputed(self, container, season):
        # Arrange
        group_id = await container.allocator.assign(season.season_id, 1, "a")
        await container.allocator.assign(season.season_id, 1, "b")
        async with DatabaseService.get_transaction() as session:
            await session.execute(
                update(LeagueGroup)
                .where(LeagueGroup.id == group_id)
                .values(current_count=20, is_full=True)
            )

        # Act
        repaired = await container.reconciliation.repair_group_counts()

        # Assert
        assert repaired == 1
        async with DatabaseService.get_session() as session:
            group = await session.get(LeagueGroup, group_id)
        assert group.current_count == 2
        assert group.is_full is False

    async def test_consistent_groups_untouched(self, container, season):
        await container.allocator.assign(season.season_id, 1, "a")

        assert await container.reconciliation.repair_group_counts() == 0


@pytest.mark.integration
@pytest.mark.database
class TestRebuildMemberPoints:
    async def test_mirror_and_dangling_ids_repaired(self, container, season):
        # Arrange
        await container.points.submit("a", 40)
        await container.points.submit("b", 10)
        async with DatabaseService.get_transaction() as session:
            await session.execute(
                update(GroupMembership)
                .where(GroupMembership.user_id == "a")
                .values(points=15.0)
            )
            session.add(
                UserSeasonPoints(
                    season_id=season.season_id,
                    user_id="orphan",
                    league=1,
                    group_id=999,
                    points=3.0,
                )
            )

        # Act
        result = await container.reconciliation.repair_season()

        # Assert
        assert result == {"groupsRepaired": 0, "membersRepaired": 1, "danglingCleared": 1}
        async with DatabaseService.get_session() as session:
            mirror = await session.scalar(
                select(GroupMembership.points).where(GroupMembership.user_id == "a")
            )
            orphan = await session.get(UserSeasonPoints, (season.season_id, "orphan"))
        assert mirror == 40.0
        assert orphan.group_id is None
