"""Transaction boundary over the request database session."""

from sqlalchemy.ext.asyncio import AsyncSession


class SqlUnitOfWork:
    """Commits or rolls back the writes made by the SQL repositories of one request."""

    def __init__(self, db: AsyncSession):
        """Initialize with database session."""
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
