"""
Season Registry
===============

Purpose
-------
Resolves the single active weekly season, lazily creates it on the first
write of the week, and rolls it over into the next window.

Domain
------
- Season window: Monday 00:00 UTC to the following Monday 00:00 UTC
- Season id: "{start:%Y-%m-%d}_{end:%Y-%m-%d}"
- Read paths never create a season (NoActiveSeasonError); the points write
  path does
- Rollover freezes the global top-N into SeasonLeaderboardSnapshot, closes
  the season and opens the next window at the previous end_at. No
  promotion or demotion happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError

from src.core.database.base import ensure_utc, utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import (
    Season,
    SeasonLeaderboardSnapshot,
    SeasonStatus,
    UserSeasonPoints,
)
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NoActiveSeasonError
from src.modules.shared.validators import validate_season_id

if TYPE_CHECKING:
    from logging import Logger


# ============================================================================
# Window arithmetic
# ============================================================================


@dataclass(frozen=True)
class SeasonWindow:
    season_id: str
    start_at: datetime
    end_at: datetime


def format_season_id(start_at: datetime, end_at: datetime) -> str:
    return f"{start_at:%Y-%m-%d}_{end_at:%Y-%m-%d}"


def week_start(now: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing ``now``."""
    now = ensure_utc(now)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


def compute_window(now: Optional[datetime] = None, length_days: int = 7) -> SeasonWindow:
    start_at = week_start(now or datetime.now(timezone.utc))
    end_at = start_at + timedelta(days=length_days)
    return SeasonWindow(format_season_id(start_at, end_at), start_at, end_at)


def season_to_dict(season: Season) -> Dict[str, Any]:
    return {
        "seasonId": season.season_id,
        "startAt": ensure_utc(season.start_at).isoformat(),
        "endAt": ensure_utc(season.end_at).isoformat(),
        "status": season.status,
    }


# ============================================================================
# Repositories
# ============================================================================


class SeasonRepository(BaseRepository[Season]):
    async def find_active(self, session, *, for_update: bool = False) -> Optional[Season]:
        seasons = await self.find_many_where(
            session,
            Season.status == SeasonStatus.ACTIVE.value,
            order_by=(desc(Season.start_at),),
            for_update=for_update,
            limit=1,
        )
        return seasons[0] if seasons else None


class SnapshotRepository(BaseRepository[SeasonLeaderboardSnapshot]):
    pass


# ============================================================================
# SeasonService
# ============================================================================


class SeasonService(BaseService):
    """
    Registry of weekly seasons.

    Public Methods
    --------------
    - compute_window() -> Window containing a given instant
    - get_current_season() -> Active season or None
    - require_current_season_id() -> Explicit or active id, else NoActiveSeasonError
    - get_or_create_current_season() -> Active season, created if absent
    - roll_over() -> Close the active season and open the next one
    - get_season_snapshot() -> Frozen standings of a rolled season
    """

    def __init__(self, logger: Logger) -> None:
        super().__init__(logger)
        self._seasons = SeasonRepository(
            model_class=Season,
            logger=get_logger(f"{__name__}.SeasonRepository"),
        )
        self._snapshots = SnapshotRepository(
            model_class=SeasonLeaderboardSnapshot,
            logger=get_logger(f"{__name__}.SnapshotRepository"),
        )

    @property
    def length_days(self) -> int:
        return int(self.get_config("RANKING_SEASON_LENGTH_DAYS", 7))

    def compute_window(self, now: Optional[datetime] = None) -> SeasonWindow:
        return compute_window(now, self.length_days)

    # ========================================================================
    # Read paths
    # ========================================================================

    async def get_current_season(self) -> Optional[Season]:
        async with DatabaseService.get_session() as session:
            return await self._seasons.find_active(session)

    async def require_current_season_id(self, season_id: Optional[str] = None) -> str:
        """
        Resolve the season a read operates on.

        An explicit id is used as given (after format validation); otherwise
        the active season id. Never creates a season.

        Raises:
            NoActiveSeasonError: no explicit id and no active season
        """
        explicit = validate_season_id(season_id)
        if explicit is not None:
            return explicit

        season = await self.get_current_season()
        if season is None:
            raise NoActiveSeasonError()
        return season.season_id

    # ========================================================================
    # Write paths
    # ========================================================================

    async def get_or_create_current_season(
        self, now: Optional[datetime] = None
    ) -> Season:
        """
        Return the active season, creating it from the current window if
        none exists. An active season whose window has passed is returned
        as is; moving to the next week is roll_over's job.
        """
        season = await self.get_current_season()
        if season is not None:
            return season

        window = self.compute_window(now)

        try:
            async with DatabaseService.get_transaction() as session:
                existing = await self._seasons.get(session, window.season_id)
                if existing is not None:
                    # Closed earlier in the same week; reopen it.
                    existing.status = SeasonStatus.ACTIVE.value
                    season = existing
                else:
                    season = self._seasons.add(
                        session,
                        Season(
                            season_id=window.season_id,
                            start_at=window.start_at,
                            end_at=window.end_at,
                            status=SeasonStatus.ACTIVE.value,
                        ),
                    )
        except IntegrityError:
            # A concurrent writer created the same window first.
            self.log.info(
                "Season created concurrently; re-reading",
                extra={"season_id": window.season_id},
            )
            season = await self.get_current_season()
            if season is None:
                raise
            return season

        self.log_operation(
            "season_created",
            season_id=window.season_id,
            start_at=window.start_at.isoformat(),
            end_at=window.end_at.isoformat(),
        )
        return season

    async def roll_over(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Close the active season and open the next window.

        Steps, in one transaction:
        1. Snapshot the global top-N ledger rows by points (descending) with
           1-based positions.
        2. Mark the season closed and stamp rolled_at.
        3. Create the next season starting at the previous end_at.

        Raises:
            NoActiveSeasonError: there is no active season to roll
        """
        now = ensure_utc(now or utc_now())
        snapshot_size = int(self.get_config("RANKING_SNAPSHOT_SIZE", 100))

        async with DatabaseService.get_transaction() as session:
            season = await self._seasons.find_active(session, for_update=True)
            if season is None:
                raise NoActiveSeasonError()

            end_at = ensure_utc(season.end_at)
            if now < end_at:
                self.log.warning(
                    "Rolling over a season before its end",
                    extra={
                        "season_id": season.season_id,
                        "end_at": end_at.isoformat(),
                    },
                )

            result = await session.execute(
                select(UserSeasonPoints)
                .where(UserSeasonPoints.season_id == season.season_id)
                .order_by(desc(UserSeasonPoints.points), UserSeasonPoints.user_id)
                .limit(snapshot_size)
            )
            top = list(result.scalars().all())

            for position, row in enumerate(top, start=1):
                self._snapshots.add(
                    session,
                    SeasonLeaderboardSnapshot(
                        season_id=season.season_id,
                        user_id=row.user_id,
                        points=row.points,
                        position=position,
                        last_activity_at=row.last_activity_at,
                    ),
                )

            season.status = SeasonStatus.CLOSED.value
            season.rolled_at = now

            next_start = end_at
            next_end = next_start + timedelta(days=self.length_days)
            next_id = format_season_id(next_start, next_end)

            existing_next = await self._seasons.get(session, next_id)
            if existing_next is not None:
                existing_next.status = SeasonStatus.ACTIVE.value
            else:
                self._seasons.add(
                    session,
                    Season(
                        season_id=next_id,
                        start_at=next_start,
                        end_at=next_end,
                        status=SeasonStatus.ACTIVE.value,
                    ),
                )

            previous_id = season.season_id

        self.log_operation(
            "season_rolled_over",
            previous_season_id=previous_id,
            next_season_id=next_id,
            snapshot_size=len(top),
        )

        return {
            "success": True,
            "previousSeasonId": previous_id,
            "nextSeasonId": next_id,
            "snapshotSize": len(top),
        }

    async def get_season_snapshot(self, season_id: str) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            rows = await self._snapshots.find_many_where(
                session,
                SeasonLeaderboardSnapshot.season_id == season_id,
                order_by=(SeasonLeaderboardSnapshot.position,),
            )

        return [
            {
                "userId": row.user_id,
                "points": row.points,
                "position": row.position,
                "lastActivityAt": (
                    ensure_utc(row.last_activity_at).isoformat()
                    if row.last_activity_at
                    else None
                ),
            }
            for row in rows
        ]
