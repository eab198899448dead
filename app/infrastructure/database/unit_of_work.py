"""Unit of work pattern implementation."""
from types import TracebackType
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.repositories import (
    FaceMatchRepository,
    PersonRepository,
    PhotoRepository,
    UserRepository,
)


class UnitOfWork:
    """Unit of work for managing database transactions and repositories.

    Example:
        ```python
        async with database.session() as session:
            async with UnitOfWork(session) as uow:
                record = await uow.matches.create(...)
                await uow.photos.adjust_match_count(photo_id, 1)
            # committed here, or rolled back if the block raised
        ```
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize unit of work.

        Args:
            session: Database session
        """
        self._session = session
        self.users = UserRepository(session)
        self.persons = PersonRepository(session)
        self.photos = PhotoRepository(session)
        self.matches = FaceMatchRepository(session)

    async def __aenter__(self) -> "UnitOfWork":
        """Enter async context manager.

        Returns:
            UnitOfWork: Self
        """
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Commit on success, roll back if an error occurred."""
        if exc_type is not None:
            await self.rollback()
        else:
            await self.commit()

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self._session.rollback()
