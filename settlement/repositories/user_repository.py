"""User repository."""

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.user import User
from settlement.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository (read-mostly, owned by the user domain)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)
