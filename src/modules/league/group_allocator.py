"""
Group Allocator
===============

Purpose
-------
Seats a user in a fixed-capacity group of a (season, league) pair.

Admission protocol
------------------
1. Scan (own read session, no locks): first group of the pair that is not
   full, ascending by group id (creation order).
2. None open: create an empty group in its own transaction, then scan
   again and take the lowest open group. Callers racing into an empty
   (season, league) each create a group but mostly converge on the first;
   the groups left over stay empty and open for later admissions.
3. Admission transaction:
   - reject a user who already holds a membership this season
   - re-read the group with SELECT ... FOR UPDATE
   - increment with a guarded UPDATE (``current_count < capacity``); a
     group filled since the scan raises GroupFullError
   - insert the membership, upsert the season ledger row, update the
     profile seat

``assign`` never retries. ``assign_with_retry`` wraps it in the bounded,
jittered RetryPolicy so that a lost race re-scans and lands in another
(or a new) group.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from src.core.database.base import utc_now
from src.core.database.retry_policy import RetryPolicy
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import GroupMembership, LeagueGroup, UserSeasonPoints
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import GroupFullError, InvalidOperationError
from src.modules.shared.validators import validate_league_number

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.modules.profile.store import UserProfileStore


# ============================================================================
# Repositories
# ============================================================================


class GroupRepository(BaseRepository[LeagueGroup]):
    async def first_open(
        self, session: AsyncSession, season_id: str, league_number: int
    ) -> Optional[LeagueGroup]:
        groups = await self.find_many_where(
            session,
            LeagueGroup.season_id == season_id,
            LeagueGroup.league_number == league_number,
            LeagueGroup.is_full.is_(False),
            LeagueGroup.current_count < LeagueGroup.capacity,
            order_by=(LeagueGroup.id,),
            limit=1,
        )
        return groups[0] if groups else None

    async def try_increment(self, session: AsyncSession, group_id: int) -> bool:
        """Atomically take one seat. False when the group is already at capacity."""
        result = await session.execute(
            update(LeagueGroup)
            .where(
                LeagueGroup.id == group_id,
                LeagueGroup.current_count < LeagueGroup.capacity,
            )
            .values(
                current_count=LeagueGroup.current_count + 1,
                is_full=(LeagueGroup.current_count + 1) >= LeagueGroup.capacity,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class MembershipRepository(BaseRepository[GroupMembership]):
    async def find_for_user(
        self, session: AsyncSession, season_id: str, user_id: str
    ) -> Optional[GroupMembership]:
        return await self.find_one_where(
            session,
            GroupMembership.season_id == season_id,
            GroupMembership.user_id == user_id,
        )


class SeasonPointsRepository(BaseRepository[UserSeasonPoints]):
    async def get_row(
        self,
        session: AsyncSession,
        season_id: str,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[UserSeasonPoints]:
        if for_update:
            return await self.get_for_update(session, (season_id, user_id))
        return await self.get(session, (season_id, user_id))


# ============================================================================
# GroupAllocator
# ============================================================================


class GroupAllocator(BaseService):
    """
    Scan + transactional admission into league groups.

    Public Methods
    --------------
    - assign() -> Single admission attempt; raises GroupFullError on a lost race
    - assign_with_retry() -> Bounded retry around assign()
    - find_open_group() / create_group() -> The two scan-phase steps
    """

    def __init__(
        self,
        profiles: UserProfileStore,
        logger: Logger,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(logger)
        self.profiles = profiles
        self._retry_policy = retry_policy or RetryPolicy.for_group_assignment(
            (GroupFullError, OperationalError)
        )

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

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def group_capacity(self) -> int:
        return int(self.get_config("RANKING_GROUP_CAPACITY", 20))

    # ========================================================================
    # Scan phase
    # ========================================================================

    async def find_open_group(self, season_id: str, league_number: int) -> Optional[int]:
        async with DatabaseService.get_session() as session:
            group = await self._groups.first_open(session, season_id, league_number)
            return group.id if group else None

    async def create_group(self, season_id: str, league_number: int) -> int:
        capacity = self.group_capacity
        async with DatabaseService.get_transaction() as session:
            group = self._groups.add(
                session,
                LeagueGroup(
                    season_id=season_id,
                    league_number=league_number,
                    capacity=capacity,
                    current_count=0,
                    is_full=False,
                    created_at=utc_now(),
                ),
            )
            await self._groups.flush(session)
            group_id = group.id

        self.log_operation(
            "group_created",
            season_id=season_id,
            league_number=league_number,
            group_id=group_id,
            capacity=capacity,
        )
        return group_id

    # ========================================================================
    # Admission
    # ========================================================================

    async def assign(
        self,
        season_id: str,
        league_number: int,
        user_id: str,
        initial_points: float = 0.0,
    ) -> int:
        """
        Seat ``user_id`` in an open group of (season_id, league_number).

        Returns:
            The id of the group the user joined.

        Raises:
            LeagueOutOfRangeError: league_number outside 1..15
            InvalidOperationError: user already seated this season
            GroupFullError: the scanned group filled up before admission
        """
        league_number = validate_league_number(league_number)

        group_id = await self.find_open_group(season_id, league_number)
        if group_id is None:
            created = await self.create_group(season_id, league_number)
            # Concurrent first admissions each create a group; converge on the lowest open one.
            group_id = await self.find_open_group(season_id, league_number) or created

        try:
            async with DatabaseService.get_transaction() as session:
                await self._admit(
                    session, group_id, season_id, league_number, user_id, initial_points
                )
        except IntegrityError as exc:
            # Unique (season_id, user_id) lost to a concurrent admission.
            raise self._already_seated(season_id, user_id) from exc

        self.log_operation(
            "user_assigned_to_group",
            season_id=season_id,
            league_number=league_number,
            group_id=group_id,
            user_id=user_id,
        )
        return group_id

    async def _admit(
        self,
        session: AsyncSession,
        group_id: int,
        season_id: str,
        league_number: int,
        user_id: str,
        initial_points: float,
    ) -> None:
        if await self._memberships.find_for_user(session, season_id, user_id):
            raise self._already_seated(season_id, user_id)

        group = await DatabaseService.get_locked_entity(session, LeagueGroup, group_id)
        if group is None:
            raise InvalidOperationError("assign_group", f"group {group_id} does not exist")

        if group.is_full or group.current_count >= group.capacity:
            raise GroupFullError(group_id, group.capacity, group.current_count)

        if not await self._groups.try_increment(session, group_id):
            raise GroupFullError(group_id, group.capacity, group.capacity)

        now = utc_now()
        self._memberships.add(
            session,
            GroupMembership(
                group_id=group_id,
                season_id=season_id,
                league_number=league_number,
                user_id=user_id,
                points=initial_points,
                last_activity_at=now,
            ),
        )

        ledger = await self._points.get_row(session, season_id, user_id, for_update=True)
        if ledger is None:
            self._points.add(
                session,
                UserSeasonPoints(
                    season_id=season_id,
                    user_id=user_id,
                    league=league_number,
                    group_id=group_id,
                    points=initial_points,
                    last_activity_at=now,
                ),
            )
        else:
            ledger.group_id = group_id
            ledger.league = league_number

        await self.profiles.set_current_group(
            user_id, group_id, league_number, session=session
        )

    @staticmethod
    def _already_seated(season_id: str, user_id: str) -> InvalidOperationError:
        return InvalidOperationError(
            "assign_group",
            f"user {user_id} already holds a membership in season {season_id}",
        )

    async def assign_with_retry(
        self,
        season_id: str,
        league_number: int,
        user_id: str,
        initial_points: float = 0.0,
    ) -> int:
        """
        ``assign`` under the bounded retry policy.

        Retries GroupFullError and transient OperationalError with jittered
        exponential backoff; re-raises GroupFullError once attempts are
        exhausted.
        """
        context: Dict[str, Any] = {
            "season_id": season_id,
            "league_number": league_number,
            "user_id": user_id,
        }
        return await self._retry_policy.execute(
            lambda: self.assign(season_id, league_number, user_id, initial_points),
            operation_name="league.assign_group",
            context=context,
        )
