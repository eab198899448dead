"""Identity provider interface."""
from abc import ABC, abstractmethod
from typing import Optional

from ...entities.identity import CallerScope


class IdentityProvider(ABC):
    """Interface for resolving an authenticated caller into an access scope."""

    @abstractmethod
    async def resolve(self, caller_id: Optional[str]) -> CallerScope:
        """
        Resolve the caller's role and the photos/persons they may access.

        Args:
            caller_id: Identifier of the authenticated user

        Returns:
            CallerScope derived from current state, never from client input

        Raises:
            UnauthorizedError: If the caller id is missing or unknown
        """
        pass
