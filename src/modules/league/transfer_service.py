"""
League Transfer Coordinator
===========================

Purpose
-------
Moves a user to another league tier within a season: leave the current
group, then join a group of the target tier carrying the season points
over.

Consistency
-----------
Leaving and joining are two separate units of work. If the join fails
after the leave committed, the user is left without a group for the
season (ledger ``group_id`` is null) until the next points submission or
a retried transfer seats them again. The leave itself is atomic: count
decrement, membership delete and ledger update commit together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import GroupMembership, LeagueGroup, UserSeasonPoints
from src.modules.league.group_allocator import (
    MembershipRepository,
    SeasonPointsRepository,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import UserNotFoundError
from src.modules.shared.validators import validate_league_number

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.league.group_allocator import GroupAllocator
    from src.modules.profile.store import UserProfileStore
    from src.modules.season.service import SeasonService


class LeagueTransferService(BaseService):
    """
    Public Methods
    --------------
    - transfer() -> Move a user to another tier for a season
    """

    def __init__(
        self,
        seasons: SeasonService,
        allocator: GroupAllocator,
        profiles: UserProfileStore,
        logger: Logger,
    ) -> None:
        super().__init__(logger)
        self.seasons = seasons
        self.allocator = allocator
        self.profiles = profiles

        self._memberships = MembershipRepository(
            model_class=GroupMembership,
            logger=get_logger(f"{__name__}.MembershipRepository"),
        )
        self._points = SeasonPointsRepository(
            model_class=UserSeasonPoints,
            logger=get_logger(f"{__name__}.SeasonPointsRepository"),
        )

    async def transfer(
        self,
        user_id: str,
        to_league: Any,
        season_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move ``user_id`` into ``to_league`` for the season.

        A request for the user's current league is a no-op that reports the
        current group.

        Returns:
            {"success": True, "league": int, "groupId": int | None}

        Raises:
            LeagueOutOfRangeError: to_league outside 1..15
            NoActiveSeasonError: no season given and none active
            UserNotFoundError: no profile for user_id
            GroupFullError: target tier admission kept losing races
        """
        to_league = validate_league_number(to_league)
        season_id = await self.seasons.require_current_season_id(season_id)

        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            raise UserNotFoundError(user_id)

        if profile.league == to_league:
            async with DatabaseService.get_session() as session:
                row = await self._points.get_row(session, season_id, user_id)
                group_id = row.group_id if row else None

            self.log.debug(
                "League transfer is a no-op",
                extra={"user_id": user_id, "league": to_league, "season_id": season_id},
            )
            return {"success": True, "league": to_league, "groupId": group_id}

        carried_over_points = await self._leave_current_group(season_id, user_id)

        group_id = await self.allocator.assign_with_retry(
            season_id, to_league, user_id, carried_over_points
        )

        await self.profiles.set_league(user_id, to_league)

        self.log_operation(
            "league_transfer",
            user_id=user_id,
            season_id=season_id,
            from_league=profile.league,
            to_league=to_league,
            group_id=group_id,
            carried_over_points=carried_over_points,
        )
        return {"success": True, "league": to_league, "groupId": group_id}

    async def _leave_current_group(self, season_id: str, user_id: str) -> float:
        """
        Release the user's seat in their current group, if any.

        Returns the user's season points (0 when they have no ledger row).
        """
        async with DatabaseService.get_transaction() as session:
            row = await self._points.get_row(session, season_id, user_id, for_update=True)
            if row is None:
                return 0.0

            points = float(row.points or 0.0)
            old_group_id = row.group_id
            if old_group_id is None:
                return points

            group = await DatabaseService.get_locked_entity(
                session, LeagueGroup, old_group_id
            )
            if group is not None:
                group.current_count = max(0, group.current_count - 1)
                group.is_full = False

            membership = await self._memberships.find_for_user(session, season_id, user_id)
            if membership is not None:
                await self._memberships.delete(session, membership)

            row.group_id = None

        self.log.info(
            "User left league group",
            extra={
                "user_id": user_id,
                "season_id": season_id,
                "group_id": old_group_id,
                "points": points,
            },
        )
        return points
