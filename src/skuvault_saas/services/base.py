from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Base class for services. Holds the session shared by the repositories a
    service uses and owns the commit/rollback boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
