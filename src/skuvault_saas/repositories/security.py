from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from skuvault_saas.db.models import User
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Repository for dashboard users."""

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email)
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)
