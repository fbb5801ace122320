from __future__ import annotations

from typing import Any, ClassVar, Optional

from sqlalchemy import Executable, func, select
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Repositories never commit on their own; the calling service decides the
    transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def flush(self) -> None:
        await self.session.flush()


class CustomerScopedRepository(BaseRepository):
    """
    Repository bound to a single customer.

    Every query issued through a subclass filters on `model.customer_id`, so one
    customer's rows are never visible while working on another.
    """

    model: ClassVar[Any]

    def __init__(self, session: AsyncSession, customer_id: int) -> None:
        super().__init__(session)
        self.customer_id = customer_id

    def _select(self):
        return select(self.model).where(self.model.customer_id == self.customer_id)

    async def list_all(self) -> list:
        return list(await self.scalars(self._select().order_by(self.model.id)))

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model).where(self.model.customer_id == self.customer_id)
        result = await self.execute(stmt)
        return int(result.scalar_one())
