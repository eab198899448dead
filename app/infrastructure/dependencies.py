"""FastAPI dependency providers."""
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request

from app.core.config import settings
from app.core.container import ServiceContainer, container
from app.core.exceptions import ServiceNotInitializedError, UnauthorizedError
from app.services.enrollment import EnrollmentService
from app.services.match_registry import MatchRegistry
from app.services.photo_matching import PhotoMatchingService


async def get_container() -> ServiceContainer:
    """Dependency provider for the global ServiceContainer instance."""
    if not container.is_initialized:
        raise ServiceNotInitializedError("Service container not initialized")
    return container


async def get_caller_id(request: Request) -> str:
    """Read the authenticated caller id forwarded by the auth gateway.

    Raises:
        UnauthorizedError: If the header is missing or blank
    """
    caller_id: Optional[str] = request.headers.get(settings.CALLER_ID_HEADER)
    if not caller_id or not caller_id.strip():
        raise UnauthorizedError("Authentication required")
    return caller_id.strip()


async def get_match_registry(
    cont: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[MatchRegistry, None]:
    """Provide the match registry.

    Raises:
        ServiceNotInitializedError: If the registry is not initialized
    """
    if cont.match_registry is None:
        raise ServiceNotInitializedError("Match registry not initialized")
    yield cont.match_registry


async def get_enrollment_service(
    cont: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[EnrollmentService, None]:
    """Provide the enrollment service."""
    if cont.enrollment_service is None:
        raise ServiceNotInitializedError("Enrollment service not initialized")
    yield cont.enrollment_service


async def get_photo_matching_service(
    cont: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[PhotoMatchingService, None]:
    """Provide the photo matching service."""
    if cont.photo_matching_service is None:
        raise ServiceNotInitializedError("Photo matching service not initialized")
    yield cont.photo_matching_service
