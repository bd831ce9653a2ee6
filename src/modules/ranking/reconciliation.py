"""
Group Reconciliation
====================

Repairs the state the non-atomic write paths can leave behind:

- a league transfer that released a seat but failed to join the new tier
- a points submission whose membership mirror write failed after the
  ledger write committed
- a group whose ``current_count`` drifted from its real membership

The inline write paths are unchanged; this is an explicit repair pass
run by an operator or a scheduled job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional

from sqlalchemy import select

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import GroupMembership, LeagueGroup, UserSeasonPoints
from src.modules.league.group_allocator import (
    GroupRepository,
    MembershipRepository,
    SeasonPointsRepository,
)
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.season.service import SeasonService


class GroupReconciliationService(BaseService):
    """
    Public Methods
    --------------
    - repair_group_counts() -> Recompute current_count / is_full per group
    - rebuild_member_points() -> Copy ledger points onto memberships, clear dangling group ids
    - repair_season() -> Both passes
    """

    def __init__(self, seasons: SeasonService, logger: Logger) -> None:
        super().__init__(logger)
        self.seasons = seasons

        self._groups = GroupRepository(
            model_class=LeagueGroup,
            logger=get_logger(f"{__name__}.GroupRepository"),
        )
        self._memberships = MembershipRepository(
            model_class=GroupMembership,
            logger=get_logger(f"{__name__}.MembershipRepository"),
        )
        self._points = SeasonPointsRepository(
            model_class=UserSeasonPoints,
            logger=get_logger(f"{__name__}.SeasonPointsRepository"),
        )

    async def repair_group_counts(self, season_id: Optional[str] = None) -> int:
        """
        Recompute every group's count from its memberships.

        Each group is repaired in its own transaction with the group row
        locked. Returns the number of groups that needed a correction.
        """
        season_id = await self.seasons.require_current_season_id(season_id)

        async with DatabaseService.get_session() as session:
            group_ids = [
                group.id
                for group in await self._groups.find_many_where(
                    session,
                    LeagueGroup.season_id == season_id,
                    order_by=(LeagueGroup.id,),
                )
            ]

        repaired = 0
        for group_id in group_ids:
            async with DatabaseService.get_transaction() as session:
                group = await DatabaseService.get_locked_entity(session, LeagueGroup, group_id)
                if group is None:
                    continue

                actual = await self._memberships.count(
                    session, GroupMembership.group_id == group_id
                )
                should_be_full = actual >= group.capacity

                if group.current_count == actual and bool(group.is_full) == should_be_full:
                    continue

                self.log.warning(
                    "Group count corrected",
                    extra={
                        "season_id": season_id,
                        "group_id": group_id,
                        "stored_count": group.current_count,
                        "actual_count": actual,
                        "capacity": group.capacity,
                    },
                )
                group.current_count = actual
                group.is_full = should_be_full
                repaired += 1

        self.log_operation(
            "repair_group_counts",
            season_id=season_id,
            groups_checked=len(group_ids),
            groups_repaired=repaired,
        )
        return repaired

    async def rebuild_member_points(
        self, season_id: Optional[str] = None
    ) -> Dict[str, int]:
        """
        Make memberships agree with the ledger.

        - membership.points := ledger.points where they differ
        - ledger.group_id := None where the named group holds no membership
          for the user
        """
        season_id = await self.seasons.require_current_season_id(season_id)

        members_repaired = 0
        dangling_cleared = 0

        async with DatabaseService.get_transaction() as session:
            result = await session.execute(
                select(UserSeasonPoints, GroupMembership)
                .join(
                    GroupMembership,
                    (GroupMembership.season_id == UserSeasonPoints.season_id)
                    & (GroupMembership.user_id == UserSeasonPoints.user_id),
                )
                .where(UserSeasonPoints.season_id == season_id)
            )
            for ledger, membership in result.all():
                if membership.points != ledger.points:
                    self.log.info(
                        "Membership points rebuilt from ledger",
                        extra={
                            "user_id": ledger.user_id,
                            "season_id": season_id,
                            "mirror_points": membership.points,
                            "ledger_points": ledger.points,
                        },
                    )
                    membership.points = ledger.points
                    members_repaired += 1

            seated = await self._points.find_many_where(
                session,
                UserSeasonPoints.season_id == season_id,
                UserSeasonPoints.group_id.is_not(None),
            )
            for ledger in seated:
                has_seat = await self._memberships.count(
                    session,
                    GroupMembership.group_id == ledger.group_id,
                    GroupMembership.user_id == ledger.user_id,
                )
                if has_seat:
                    continue
                self.log.warning(
                    "Dangling ledger group id cleared",
                    extra={
                        "user_id": ledger.user_id,
                        "season_id": season_id,
                        "group_id": ledger.group_id,
                    },
                )
                ledger.group_id = None
                dangling_cleared += 1

        self.log_operation(
            "rebuild_member_points",
            season_id=season_id,
            members_repaired=members_repaired,
            dangling_cleared=dangling_cleared,
        )
        return {
            "membersRepaired": members_repaired,
            "danglingCleared": dangling_cleared,
        }

    async def repair_season(self, season_id: Optional[str] = None) -> Dict[str, int]:
        season_id = await self.seasons.require_current_season_id(season_id)
        groups_repaired = await self.repair_group_counts(season_id)
        points = await self.rebuild_member_points(season_id)
        return {"groupsRepaired": groups_repaired, **points}
