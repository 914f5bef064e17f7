from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction


class BaseRepository:
    """Thin base class that holds the database session.

    Every concrete repository receives an ``AsyncSession`` at
    construction time so that multiple repositories can share the same
    unit-of-work while one email is processed.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    def savepoint(self) -> AsyncSessionTransaction:
        """Open a SAVEPOINT; use as ``async with repo.savepoint():``.

        Leaving the block with an exception rolls back only the writes
        made inside it.
        """
        return self._db.begin_nested()

    async def flush(self) -> None:
        """Flush pending changes without committing."""
        await self._db.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._db.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        await self._db.rollback()
