"""
UserProfile: minimal profile backing for the SQL profile store.
Schema only.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class UserProfile(Base, TimestampMixin):
    """
    The subset of a user profile the ranking engine reads and writes.

    friends is the list of followed user ids.
    """

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    league: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    friends: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
