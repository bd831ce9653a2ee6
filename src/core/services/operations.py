"""
Ranking Operations
==================

Purpose
-------
The callable surface of the ranking engine: one async method per
operation, each taking the request ``data`` dict and returning a plain
dict (or None).

Error contract
--------------
- Validation errors are raised before any I/O and name the field.
- Domain errors (RankingDomainException subclasses) propagate verbatim.
- Anything else is logged with the traceback and re-raised as
  OperationFailedError with a fixed message for the operation.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

from src.core.logging.logger import LogContext
from src.modules.season.service import season_to_dict
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    MissingParameterError,
    OperationFailedError,
    is_domain_error,
)
from src.modules.shared.validators import (
    is_missing,
    require_params,
    validate_user_id,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.league.service import LeagueService
    from src.modules.ranking.points_service import PointsService
    from src.modules.ranking.reconciliation import GroupReconciliationService
    from src.modules.ranking.service import RankingService
    from src.modules.season.service import SeasonService


class RankingOperations(BaseService):
    """
    Public Methods
    --------------
    - get_league_info() / get_all_leagues_info()
    - get_user_group() / update_user_league() / assign_user_to_group()
    - get_leaderboard() / get_user_ranking() / get_following_rankings()
    - submit_points()
    - get_current_season() / roll_over_season() / repair_season()
    """

    def __init__(
        self,
        league: LeagueService,
        points: PointsService,
        ranking: RankingService,
        seasons: SeasonService,
        reconciliation: GroupReconciliationService,
        logger: Logger,
    ) -> None:
        super().__init__(logger)
        self.league = league
        self.points = points
        self.ranking = ranking
        self.seasons = seasons
        self.reconciliation = reconciliation

    @asynccontextmanager
    async def _guard(
        self,
        operation: str,
        failure_message: str,
        data: Dict[str, Any],
    ) -> AsyncIterator[None]:
        user_id = data.get("userId")
        season_id = data.get("seasonId")
        async with LogContext(
            user_id=user_id,
            season_id=season_id,
            component="ranking",
            operation=operation,
        ):
            try:
                yield
            except Exception as exc:
                if is_domain_error(exc):
                    raise
                self.log_error(
                    operation,
                    exc,
                    user_id=user_id,
                    season_id=season_id,
                )
                raise OperationFailedError(failure_message, operation=operation) from exc

    # ========================================================================
    # Leagues
    # ========================================================================

    async def get_league_info(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard("get_league_info", "Failed to get league info", data):
            require_params(data, "leagueNumber")
            return self.league.get_league_info(data["leagueNumber"])

    async def get_all_leagues_info(
        self, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        data = data or {}
        async with self._guard("get_all_leagues_info", "Failed to get leagues info", data):
            return self.league.get_all_leagues_info()

    async def get_user_group(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        async with self._guard("get_user_group", "Failed to get user group", data):
            user_id = validate_user_id(data.get("userId"))
            return await self.league.get_user_group(user_id, data.get("seasonId"))

    async def update_user_league(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard("update_user_league", "Failed to update user league", data):
            require_params(data, "userId", "newLeague")
            user_id = validate_user_id(data["userId"])
            return await self.league.update_user_league(
                user_id, data["newLeague"], data.get("seasonId")
            )

    async def assign_user_to_group(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard("assign_user_to_group", "Failed to assign user to group", data):
            require_params(data, "userId", "leagueNumber", "seasonId")
            user_id = validate_user_id(data["userId"])
            return await self.league.assign_user_to_group(
                user_id, data["leagueNumber"], data["seasonId"]
            )

    # ========================================================================
    # Rankings
    # ========================================================================

    async def get_leaderboard(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard("get_leaderboard", "Failed to get leaderboard", data):
            user_id = validate_user_id(data.get("userId"))
            return await self.ranking.get_leaderboard(user_id, data.get("seasonId"))

    async def get_user_ranking(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        async with self._guard("get_user_ranking", "Failed to get user ranking", data):
            user_id = validate_user_id(data.get("userId"))
            return await self.ranking.get_user_ranking(user_id, data.get("seasonId"))

    async def get_following_rankings(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard(
            "get_following_rankings", "Failed to get following rankings", data
        ):
            user_id = validate_user_id(data.get("userId"))
            return await self.ranking.get_following_rankings(user_id, data.get("seasonId"))

    async def submit_points(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._guard("submit_points", "Failed to submit points", data):
            user_id = validate_user_id(data.get("userId"))
            if "delta" not in data or is_missing(data["delta"]):
                raise MissingParameterError("delta")
            return await self.points.submit(user_id, data["delta"])

    # ========================================================================
    # Seasons
    # ========================================================================

    async def get_current_season(
        self, data: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        data = data or {}
        async with self._guard("get_current_season", "Failed to get current season", data):
            season = await self.seasons.get_current_season()
            return season_to_dict(season) if season is not None else None

    async def roll_over_season(
        self, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        data = data or {}
        async with self._guard("roll_over_season", "Failed to roll over season", data):
            return await self.seasons.roll_over()

    async def repair_season(
        self, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        data = data or {}
        async with self._guard("repair_season", "Failed to repair season", data):
            return await self.reconciliation.repair_season(data.get("seasonId"))
