"""
Season and SeasonLeaderboardSnapshot.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now

from .enums import SeasonStatus


class Season(Base):
    """
    A weekly competition window, Monday 00:00 UTC to the next Monday.

    season_id is "YYYY-MM-DD_YYYY-MM-DD" (start date, end date).
    """

    __tablename__ = "seasons"
    __table_args__ = (Index("ix_seasons_status", "status"),)

    season_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SeasonStatus.ACTIVE.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    rolled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Season {self.season_id} status={self.status}>"


class SeasonLeaderboardSnapshot(Base, IdMixin):
    """Global top-N standings frozen when a season is rolled over."""

    __tablename__ = "season_leaderboard_snapshots"
    __table_args__ = (
        UniqueConstraint("season_id", "user_id", name="uq_snapshot_season_user"),
        Index("ix_snapshot_season_position", "season_id", "position"),
    )

    season_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
