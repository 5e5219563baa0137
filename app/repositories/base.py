"""
Base Repository.

每個 repository 綁一個 AsyncSession；交易邊界（commit / rollback）由呼叫端
的 session context 決定，repository 只 flush。
"""
from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Session holder shared by the repositories."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def flush(self) -> None:
        """Push pending changes so generated ids and FKs are populated."""
        await self.session.flush()
