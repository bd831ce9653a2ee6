"""
Points Ledger
=============

Purpose
-------
Accumulates a user's points for the active season.

Flow of ``submit``
------------------
1. Resolve the active season, creating it on the first write of the week.
2. First activity this season (or a ledger row without a group): create
   the ledger row at 0 points in the user's profile league and seat the
   user through the allocator.
3. ``points += delta`` on the ledger row (own transaction).
4. ``points += delta`` on the group membership mirror (own transaction).

Steps 3 and 4 are independent writes. A failure between them leaves the
mirror behind the ledger; ``GroupReconciliationService.rebuild_member_points``
copies the ledger value back onto the mirror.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import GroupMembership, UserSeasonPoints
from src.modules.league.group_allocator import (
    MembershipRepository,
    SeasonPointsRepository,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InvalidOperationError
from src.modules.shared.validators import validate_delta, validate_user_id

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.league.group_allocator import GroupAllocator
    from src.modules.profile.store import UserProfileStore
    from src.modules.season.service import SeasonService


class PointsService(BaseService):
    """
    Public Methods
    --------------
    - submit() -> Add a (possibly negative) delta to the user's season points
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

        self._points = SeasonPointsRepository(
            model_class=UserSeasonPoints,
            logger=get_logger(f"{__name__}.SeasonPointsRepository"),
        )
        self._memberships = MembershipRepository(
            model_class=GroupMembership,
            logger=get_logger(f"{__name__}.MembershipRepository"),
        )

    async def submit(self, user_id: str, delta: Any) -> Dict[str, Any]:
        """
        Add ``delta`` to the user's points for the active season.

        Raises:
            MissingParameterError: user_id absent
            NonNumericDeltaError: delta not a finite real number
        """
        user_id = validate_user_id(user_id)
        delta = validate_delta(delta)

        season = await self.seasons.get_or_create_current_season()
        season_id = season.season_id

        await self._ensure_seated(season_id, user_id)

        ledger_points = await self._apply_to_ledger(season_id, user_id, delta)
        await self._apply_to_membership(season_id, user_id, delta)

        self.log_operation(
            "points_submitted",
            user_id=user_id,
            season_id=season_id,
            delta=delta,
            points=ledger_points,
        )
        return {"success": True}

    # ========================================================================
    # Steps
    # ========================================================================

    async def _ensure_seated(self, season_id: str, user_id: str) -> None:
        async with DatabaseService.get_session() as session:
            row = await self._points.get_row(session, season_id, user_id)
            if row is not None and row.group_id is not None:
                return
            league = row.league if row is not None else None
            points = float(row.points) if row is not None else 0.0

        if row is None:
            profile = await self.profiles.get_profile(user_id)
            league = profile.league if profile else 1
            await self._create_ledger_row(season_id, user_id, league)

        try:
            await self.allocator.assign_with_retry(
                season_id, league or 1, user_id, points
            )
        except InvalidOperationError:
            # A concurrent submit for the same user seated them first.
            self.log.info(
                "User already seated by a concurrent submission",
                extra={"user_id": user_id, "season_id": season_id},
            )

    async def _create_ledger_row(self, season_id: str, user_id: str, league: int) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                self._points.add(
                    session,
                    UserSeasonPoints(
                        season_id=season_id,
                        user_id=user_id,
                        league=league,
                        group_id=None,
                        points=0.0,
                        last_activity_at=utc_now(),
                    ),
                )
        except IntegrityError:
            # Another submit for the same user created the row first.
            self.log.info(
                "Ledger row created concurrently",
                extra={"user_id": user_id, "season_id": season_id},
            )

    async def _apply_to_ledger(
        self, season_id: str, user_id: str, delta: float
    ) -> Optional[float]:
        async with DatabaseService.get_transaction() as session:
            row = await self._points.get_row(session, season_id, user_id, for_update=True)
            if row is None:
                self.log.warning(
                    "Ledger row vanished before points update",
                    extra={"user_id": user_id, "season_id": season_id},
                )
                return None
            row.points = float(row.points or 0.0) + delta
            row.last_activity_at = utc_now()
            return row.points

    async def _apply_to_membership(self, season_id: str, user_id: str, delta: float) -> None:
        async with DatabaseService.get_transaction() as session:
            membership = await self._memberships.find_one_where(
                session,
                GroupMembership.season_id == season_id,
                GroupMembership.user_id == user_id,
                for_update=True,
            )
            if membership is None:
                self.log.warning(
                    "No membership to mirror points onto",
                    extra={"user_id": user_id, "season_id": season_id},
                )
                return
            membership.points = float(membership.points or 0.0) + delta
            membership.last_activity_at = utc_now()
