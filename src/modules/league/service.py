"""
League Service
==============

Purpose
-------
League-facing read paths and the public entry points for seating users.

Domain
------
- Tier lookups (static table)
- The caller's current group for a season
- League change (delegates to LeagueTransferService)
- Explicit group assignment (delegates to GroupAllocator with retry)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import LeagueGroup, UserSeasonPoints
from src.modules.league.group_allocator import GroupRepository, SeasonPointsRepository
from src.modules.league.tiers import get_tier, list_tiers
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import UserNotFoundError
from src.modules.shared.validators import validate_league_number

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.league.group_allocator import GroupAllocator
    from src.modules.league.transfer_service import LeagueTransferService
    from src.modules.profile.store import UserProfileStore
    from src.modules.season.service import SeasonService


class LeagueService(BaseService):
    """
    Public Methods
    --------------
    - get_league_info() -> One tier
    - get_all_leagues_info() -> All 15 tiers
    - get_user_group() -> Caller's group summary or None
    - update_user_league() -> League transfer
    - assign_user_to_group() -> Seat a user in a tier for a season
    """

    def __init__(
        self,
        seasons: SeasonService,
        allocator: GroupAllocator,
        transfers: LeagueTransferService,
        profiles: UserProfileStore,
        logger: Logger,
    ) -> None:
        super().__init__(logger)
        self.seasons = seasons
        self.allocator = allocator
        self.transfers = transfers
        self.profiles = profiles

        self._groups = GroupRepository(
            model_class=LeagueGroup,
            logger=get_logger(f"{__name__}.GroupRepository"),
        )
        self._points = SeasonPointsRepository(
            model_class=UserSeasonPoints,
            logger=get_logger(f"{__name__}.SeasonPointsRepository"),
        )

    # ========================================================================
    # Tiers
    # ========================================================================

    def get_league_info(self, league_number: Any) -> Dict[str, Any]:
        return {"league": get_tier(league_number).to_dict()}

    def get_all_leagues_info(self) -> Dict[str, List[Dict[str, Any]]]:
        return {"leagues": [tier.to_dict() for tier in list_tiers()]}

    # ========================================================================
    # Groups
    # ========================================================================

    async def get_user_group(
        self, user_id: str, season_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Summary of the user's group for the season.

        Returns None when the user has no ledger row, no group, or a group
        id that no longer resolves.

        Raises:
            NoActiveSeasonError: no season given and none active
        """
        season_id = await self.seasons.require_current_season_id(season_id)

        async with DatabaseService.get_session() as session:
            row = await self._points.get_row(session, season_id, user_id)
            if row is None or row.group_id is None:
                return None

            group = await self._groups.get(session, row.group_id)
            if group is None:
                self.log.warning(
                    "Ledger points at a missing group",
                    extra={
                        "user_id": user_id,
                        "season_id": season_id,
                        "group_id": row.group_id,
                    },
                )
                return None

            return {
                "groupId": group.id,
                "leagueNumber": row.league or 1,
                "memberCount": group.current_count,
                "capacity": group.capacity,
                "isFull": bool(group.is_full),
            }

    async def update_user_league(
        self, user_id: str, new_league: Any, season_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.transfers.transfer(user_id, new_league, season_id)

    async def assign_user_to_group(
        self, user_id: str, league_number: Any, season_id: str
    ) -> Dict[str, Any]:
        """
        Seat the user in ``league_number`` for ``season_id``.

        The user's existing season points (0 if none) seed the membership.

        Raises:
            LeagueOutOfRangeError: league_number outside 1..15
            UserNotFoundError: no profile for user_id
            InvalidOperationError: user already seated this season
            GroupFullError: admission kept losing races
        """
        league_number = validate_league_number(league_number)

        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            raise UserNotFoundError(user_id)

        async with DatabaseService.get_session() as session:
            row = await self._points.get_row(session, season_id, user_id)
            initial_points = float(row.points) if row else 0.0

        group_id = await self.allocator.assign_with_retry(
            season_id, league_number, user_id, initial_points
        )
        return {"success": True, "groupId": group_id}
