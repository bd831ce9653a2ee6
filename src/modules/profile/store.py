"""
User profile collaborator.

The ranking engine reads ``username``, ``friends`` and ``league`` from the
host application's profile store and writes back ``league`` and
``current_group_id``. ``UserProfileStore`` is that seam;
``SqlUserProfileStore`` backs it with the ``user_profiles`` table so the
engine runs on its own.

Writes accept an optional session so that group admission can update the
profile inside its own transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import UserProfile
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

UNKNOWN_USERNAME = "Unknown"


@dataclass(frozen=True)
class ProfileSnapshot:
    user_id: str
    username: Optional[str] = None
    name: Optional[str] = None
    league: int = 1
    current_group_id: Optional[int] = None
    friends: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.username or self.name or UNKNOWN_USERNAME


class UserProfileStore(ABC):
    """Profile read/write interface consumed by the ranking services."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[ProfileSnapshot]:
        """Return the profile, or None when the user does not exist."""

    @abstractmethod
    async def set_league(
        self, user_id: str, league: int, *, session: Optional[AsyncSession] = None
    ) -> bool:
        """Persist the user's league. Returns False when the user is unknown."""

    @abstractmethod
    async def set_current_group(
        self,
        user_id: str,
        group_id: Optional[int],
        league: int,
        *,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """Persist the user's seat. Returns False when the user is unknown."""

    async def get_display_name(self, user_id: str) -> str:
        profile = await self.get_profile(user_id)
        return profile.display_name if profile else UNKNOWN_USERNAME


class UserProfileRepository(BaseRepository[UserProfile]):
    pass


class SqlUserProfileStore(UserProfileStore):
    """``user_profiles``-backed store."""

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.log = logger or get_logger(__name__)
        self._profiles = UserProfileRepository(
            model_class=UserProfile,
            logger=get_logger(f"{__name__}.UserProfileRepository"),
        )

    @staticmethod
    def _to_snapshot(row: UserProfile) -> ProfileSnapshot:
        return ProfileSnapshot(
            user_id=row.user_id,
            username=row.username,
            name=row.name,
            league=row.league or 1,
            current_group_id=row.current_group_id,
            friends=list(row.friends or []),
        )

    async def get_profile(self, user_id: str) -> Optional[ProfileSnapshot]:
        async with DatabaseService.get_session() as session:
            row = await self._profiles.get(session, user_id)
            return self._to_snapshot(row) if row else None

    async def _update(
        self,
        user_id: str,
        session: Optional[AsyncSession],
        **values,
    ) -> bool:
        if session is not None:
            return await self._apply(session, user_id, **values)

        async with DatabaseService.get_transaction() as own_session:
            return await self._apply(own_session, user_id, **values)

    async def _apply(self, session: AsyncSession, user_id: str, **values) -> bool:
        row = await self._profiles.get_for_update(session, user_id)
        if row is None:
            self.log.warning(
                "Profile update skipped; user does not exist",
                extra={"user_id": user_id, "fields": sorted(values)},
            )
            return False
        for key, value in values.items():
            setattr(row, key, value)
        return True

    async def set_league(
        self, user_id: str, league: int, *, session: Optional[AsyncSession] = None
    ) -> bool:
        return await self._update(user_id, session, league=league)

    async def set_current_group(
        self,
        user_id: str,
        group_id: Optional[int],
        league: int,
        *,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        return await self._update(
            user_id, session, current_group_id=group_id, league=league
        )

    async def upsert_profile(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        name: Optional[str] = None,
        league: Optional[int] = None,
        friends: Optional[Sequence[str]] = None,
    ) -> ProfileSnapshot:
        """Create or update a profile row (host-side provisioning)."""
        async with DatabaseService.get_transaction() as session:
            row = await self._profiles.get_for_update(session, user_id)
            if row is None:
                row = self._profiles.add(
                    session,
                    UserProfile(
                        user_id=user_id,
                        league=league or 1,
                        friends=list(friends or []),
                    ),
                )
            elif league is not None:
                row.league = league

            if username is not None:
                row.username = username
            if name is not None:
                row.name = name
            if friends is not None:
                row.friends = list(friends)

            await self._profiles.flush(session)
            return self._to_snapshot(row)
