"""
Generic async repository over one mapped class.

Repositories build and run statements on a session they are handed; the
calling service decides whether that session is a read session or a
transaction. They never commit.

    class GroupRepository(BaseRepository[LeagueGroup]):
        async def first_open(self, session, season_id, league_number):
            groups = await self.find_many_where(
                session,
                LeagueGroup.season_id == season_id,
                LeagueGroup.league_number == league_number,
                order_by=(LeagueGroup.id,),
                limit=1,
            )
            return groups[0] if groups else None
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    def _select(
        self,
        conditions: Sequence[ColumnElement[bool]],
        *,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        for_update: bool = False,
    ) -> Select:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if for_update:
            stmt = stmt.with_for_update()
        return stmt

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Primary-key lookup; composite keys as a tuple in column order."""
        return await session.get(self.model_class, id_value)

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Primary-key lookup under ``FOR UPDATE``, refreshing any cached copy."""
        instance = await session.get(
            self.model_class,
            id_value,
            with_for_update=True,
            populate_existing=True,
        )
        self.log.debug(
            "Row locked",
            extra={"model": self._model_name, "id": id_value, "found": instance is not None},
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        result = await session.execute(self._select(conditions, for_update=for_update))
        return result.scalar_one_or_none()

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = self._select(conditions, order_by=order_by, limit=limit, for_update=for_update)
        rows = list((await session.execute(stmt)).scalars())
        self.log.debug(
            "Rows fetched",
            extra={"model": self._model_name, "rows": len(rows), "locked": for_update},
        )
        return rows

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        return int((await session.execute(stmt)).scalar_one())

    # ========================================================================
    # Writes (caller owns the transaction)
    # ========================================================================

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        self.log.debug("Row deleted", extra={"model": self._model_name})

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
