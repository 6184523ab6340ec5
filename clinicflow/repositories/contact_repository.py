"""Contact lookups against the user directory."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.domain.entities import ContactInfo
from clinicflow.models.users import users


class SqlContactDirectory:
    """Resolves patient and staff contact details from the users table."""

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def get_contact(self, user_id: str) -> ContactInfo | None:
        stmt = select(users.c.id, users.c.full_name, users.c.email, users.c.phone).where(
            users.c.id == user_id
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            return None
        return ContactInfo(user_id=row.id, full_name=row.full_name, email=row.email, phone=row.phone)
