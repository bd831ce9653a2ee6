"""
LeagueGroup and GroupMembership.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class LeagueGroup(Base, IdMixin):
    """
    Fixed-capacity cohort of users competing within one league tier for
    one season. Never deleted.

    Invariants:
    - current_count == number of memberships
    - current_count <= capacity
    - is_full <=> current_count >= capacity
    """

    __tablename__ = "league_groups"
    __table_args__ = (
        Index("ix_league_groups_season_league", "season_id", "league_number"),
    )

    season_id: Mapped[str] = mapped_column(String(32), nullable=False)
    league_number: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_full: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return (
            f"<LeagueGroup id={self.id} league={self.league_number} "
            f"{self.current_count}/{self.capacity}>"
        )


class GroupMembership(Base, IdMixin):
    """
    A user's seat in a group. ``points`` mirrors UserSeasonPoints.points.

    A user holds at most one membership per season.
    """

    __tablename__ = "group_memberships"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_membership_group_user"),
        UniqueConstraint("season_id", "user_id", name="uq_membership_season_user"),
        Index("ix_group_memberships_group_points", "group_id", "points"),
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("league_groups.id"),
        nullable=False,
        index=True,
    )
    season_id: Mapped[str] = mapped_column(String(32), nullable=False)
    league_number: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
