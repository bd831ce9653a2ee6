"""
UserSeasonPoints: authoritative per-user season ledger.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base


class UserSeasonPoints(Base):
    """
    One row per (season, user) created on first activity.

    group_id is null until the user has been seated (or after leaving a
    group during a league transfer).
    """

    __tablename__ = "user_season_points"
    __table_args__ = (
        Index("ix_user_season_points_season_points", "season_id", "points"),
    )

    season_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    league: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
