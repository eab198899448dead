"""Database-backed resolution of callers into access scopes."""
from typing import Optional

from app.core.exceptions import UnauthorizedError
from app.core.logging import get_logger
from app.domain.entities.identity import CallerScope, Role
from app.domain.interfaces.identity import IdentityProvider
from app.infrastructure.database.session import Database

logger = get_logger(__name__)


class DatabaseIdentityProvider(IdentityProvider):
    """Resolves callers from the users, persons and photos tables.

    The scope is recomputed on every call so ownership changes apply immediately.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def resolve(self, caller_id: Optional[str]) -> CallerScope:
        if not caller_id:
            raise UnauthorizedError("Authentication required")

        async with self._database.unit_of_work() as uow:
            user = await uow.users.get(caller_id)
            if user is None:
                logger.warning("Unknown caller", caller_id=caller_id)
                raise UnauthorizedError("Unknown caller")

            try:
                role = Role(user.role)
            except ValueError:
                logger.error("User has an unknown role", caller_id=caller_id, role=user.role)
                raise UnauthorizedError("Caller has no usable role")

            if role is Role.PHOTOGRAPHER:
                photo_ids = await uow.photos.ids_for_photographer(user.id)
                return CallerScope(caller_id=user.id, role=role, photo_ids=frozenset(photo_ids))

            if role is Role.PERSON:
                person = await uow.persons.get_by_user_id(user.id)
                return CallerScope(
                    caller_id=user.id,
                    role=role,
                    person_id=person.id if person else None,
                )

            return CallerScope(caller_id=user.id, role=role)
