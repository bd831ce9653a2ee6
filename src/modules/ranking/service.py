"""
Ranking Query Service
=====================

Purpose
-------
Read-only ranking views over a season's groups.

Domain
------
- Group leaderboard: members by points desc, ties broken by membership id
  (join order); ``position`` is the 1-based list index
- User ranking: competition ranking, ``1 + |members with more points|``,
  so [200, 150, 150, 100] ranks as [1, 2, 2, 4]
- Following rankings: the user's friends' rankings in their own groups

All views resolve the season through SeasonService and raise
NoActiveSeasonError when none is given and none is active.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import case, desc, func, select

from src.core.database.base import ensure_utc
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import GroupMembership, UserSeasonPoints
from src.modules.league.group_allocator import (
    MembershipRepository,
    SeasonPointsRepository,
)
from src.modules.profile.store import UNKNOWN_USERNAME
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.modules.profile.store import UserProfileStore
    from src.modules.season.service import SeasonService


def _iso(value) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


class RankingService(BaseService):
    """
    Public Methods
    --------------
    - get_leaderboard() -> The caller's group standings
    - get_user_ranking() -> The caller's position in their group
    - get_following_rankings() -> Friends' positions, best first
    """

    def __init__(
        self,
        seasons: SeasonService,
        profiles: UserProfileStore,
        logger: Logger,
    ) -> None:
        super().__init__(logger)
        self.seasons = seasons
        self.profiles = profiles

        self._points = SeasonPointsRepository(
            model_class=UserSeasonPoints,
            logger=get_logger(f"{__name__}.SeasonPointsRepository"),
        )
        self._memberships = MembershipRepository(
            model_class=GroupMembership,
            logger=get_logger(f"{__name__}.MembershipRepository"),
        )

    # ========================================================================
    # Leaderboard
    # ========================================================================

    async def get_leaderboard(
        self, user_id: str, season_id: Optional[str] = None
    ) -> Dict[str, Any]:
        season_id = await self.seasons.require_current_season_id(season_id)

        async with DatabaseService.get_session() as session:
            row = await self._points.get_row(session, season_id, user_id)
            if row is None:
                return {
                    "entries": [],
                    "groupId": None,
                    "leagueNumber": None,
                    "seasonId": season_id,
                    "totalMembers": 0,
                }

            league = row.league or 1
            if row.group_id is None:
                return {
                    "entries": [],
                    "groupId": None,
                    "leagueNumber": league,
                    "seasonId": season_id,
                    "totalMembers": 0,
                }

            members = await self._memberships.find_many_where(
                session,
                GroupMembership.group_id == row.group_id,
                order_by=(desc(GroupMembership.points), GroupMembership.id),
            )

        entries = []
        for position, member in enumerate(members, start=1):
            entries.append(
                {
                    "userId": member.user_id,
                    "username": await self._username(member.user_id),
                    "points": member.points,
                    "position": position,
                    "lastActivityAt": _iso(member.last_activity_at),
                }
            )

        return {
            "entries": entries,
            "groupId": row.group_id,
            "leagueNumber": league,
            "seasonId": season_id,
            "totalMembers": len(entries),
        }

    async def _username(self, user_id: str) -> str:
        try:
            return await self.profiles.get_display_name(user_id)
        except Exception as exc:
            self.log.warning(
                "Username lookup failed; using fallback",
                extra={"user_id": user_id, "error_type": type(exc).__name__},
            )
            return UNKNOWN_USERNAME

    # ========================================================================
    # Position
    # ========================================================================

    async def get_user_ranking(
        self, user_id: str, season_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        season_id = await self.seasons.require_current_season_id(season_id)

        async with DatabaseService.get_session() as session:
            return await self._ranking_in_session(session, season_id, user_id)

    async def _ranking_in_session(
        self, session: AsyncSession, season_id: str, user_id: str
    ) -> Optional[Dict[str, Any]]:
        row = await self._points.get_row(session, season_id, user_id)
        if row is None or row.group_id is None:
            return None

        points = float(row.points or 0.0)

        result = await session.execute(
            select(
                func.count(GroupMembership.id),
                func.coalesce(
                    func.sum(case((GroupMembership.points > points, 1), else_=0)), 0
                ),
            ).where(GroupMembership.group_id == row.group_id)
        )
        total_members, ahead = result.one()

        return {
            "position": int(ahead or 0) + 1,
            "groupId": row.group_id,
            "leagueNumber": row.league or 1,
            "points": points,
            "totalMembers": int(total_members or 0),
        }

    # ========================================================================
    # Friends
    # ========================================================================

    async def get_following_rankings(
        self, user_id: str, season_id: Optional[str] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Rankings of the users ``user_id`` follows.

        Friends without a season row are left out. Friends with a row but
        no group are kept with ``position`` None. A failing lookup for one
        friend is logged and that friend is skipped.
        """
        season_id = await self.seasons.require_current_season_id(season_id)

        profile = await self.profiles.get_profile(user_id)
        if profile is None or not profile.friends:
            return {"rankings": []}

        rankings: List[Dict[str, Any]] = []
        for friend_id in profile.friends:
            try:
                entry = await self._friend_entry(season_id, friend_id)
            except Exception as exc:
                self.log.warning(
                    "Skipping friend after lookup failure",
                    extra={
                        "user_id": user_id,
                        "friend_id": friend_id,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue
            if entry is not None:
                rankings.append(entry)

        rankings.sort(key=lambda item: item["points"], reverse=True)
        return {"rankings": rankings}

    async def _friend_entry(
        self, season_id: str, friend_id: str
    ) -> Optional[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            row = await self._points.get_row(session, season_id, friend_id)
            if row is None:
                return None

            if row.group_id is None:
                ranking = {
                    "position": None,
                    "groupId": None,
                    "leagueNumber": row.league or 1,
                    "points": float(row.points or 0.0),
                    "totalMembers": 0,
                }
            else:
                ranking = await self._ranking_in_session(session, season_id, friend_id)

        username = await self._username(friend_id)
        return {**ranking, "userId": friend_id, "username": username}
