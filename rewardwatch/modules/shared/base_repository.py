"""
Shared query helpers for the SQLAlchemy repositories.

A repository is bound to one model class and works on whatever `AsyncSession`
the caller passes in. It may flush to obtain primary keys but never commits:
the transaction belongs to `DatabaseService.get_transaction()`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    def __init__(self, model_class: Type[ModelT], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def model_name(self) -> str:
        return self.model_class.__name__

    async def find_one_where(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> Optional[ModelT]:
        """Return the single matching row, or None. More than one match is an error."""
        result = await session.execute(select(self.model_class).where(*conditions))
        row = result.scalar_one_or_none()
        self.log.debug("Row lookup", extra={"model": self.model_name, "found": row is not None})
        return row

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Any] = None,
    ) -> List[ModelT]:
        """No conditions selects the whole table."""
        stmt = select(self.model_class).where(*conditions)
        if order_by is not None:
            stmt = stmt.order_by(order_by)

        rows = list((await session.execute(stmt)).scalars())
        self.log.debug("Rows listed", extra={"model": self.model_name, "count": len(rows)})
        return rows

    def add(self, session: AsyncSession, row: ModelT) -> ModelT:
        session.add(row)
        self.log.debug("Row staged", extra={"model": self.model_name})
        return row

    def add_many(self, session: AsyncSession, rows: Sequence[ModelT]) -> List[ModelT]:
        session.add_all(rows)
        self.log.debug("Rows staged", extra={"model": self.model_name, "count": len(rows)})
        return list(rows)

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
