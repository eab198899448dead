"""Caller identity and access scope."""
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Roles known to the platform."""
    PERSON = "person"
    PHOTOGRAPHER = "photographer"
    ADMIN = "admin"


class CallerScope(BaseModel):
    """What a resolved caller may see.

    Admins are unrestricted. Photographers are restricted to the photos they own,
    persons to their own person record.
    """
    caller_id: str
    role: Role
    person_id: Optional[str] = None
    photo_ids: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def can_access_photo(self, photo_id: str) -> bool:
        if self.is_admin:
            return True
        return self.role is Role.PHOTOGRAPHER and photo_id in self.photo_ids

    def can_access_person(self, person_id: str) -> bool:
        if self.is_admin:
            return True
        return self.role is Role.PERSON and person_id == self.person_id

    def can_access_match(self, photo_id: str, person_id: str) -> bool:
        """Whether a match on ``photo_id`` for ``person_id`` is visible to the caller."""
        return self.can_access_photo(photo_id) or self.can_access_person(person_id)
