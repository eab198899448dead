"""Service container for dependency injection."""
from typing import Optional

from app.core.config import settings
from app.domain.interfaces.identity import IdentityProvider
from app.domain.interfaces.recognition import DescriptorExtractor
from app.domain.value_objects.policies import DuplicateMatchPolicy, RecordFailurePolicy
from app.infrastructure.database.session import Database
from app.services.enrollment import EnrollmentService
from app.services.identity import DatabaseIdentityProvider
from app.services.match_registry import MatchRegistry
from app.services.photo_matching import PhotoMatchingService


def build_default_extractor() -> DescriptorExtractor:
    """Create the InsightFace extractor.

    Imported here so that importing the container does not pull in the model stack.
    """
    from app.services.recognition.insight_face import InsightFaceDescriptorExtractor

    return InsightFaceDescriptorExtractor()


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of all services in the application.
    It ensures proper initialization order and provides a single source of truth for service instances.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        # Get services from container
        registry = container.match_registry
        photo_matching = container.photo_matching_service
        ```
    """

    def __init__(self) -> None:
        """Initialize empty container."""
        # Core services - Use interface type hints
        self.database: Optional[Database] = None
        self.extractor: Optional[DescriptorExtractor] = None
        self.identity_provider: Optional[IdentityProvider] = None

        # Domain services
        self.match_registry: Optional[MatchRegistry] = None
        self.enrollment_service: Optional[EnrollmentService] = None
        self.photo_matching_service: Optional[PhotoMatchingService] = None

    @property
    def is_initialized(self) -> bool:
        return self.photo_matching_service is not None

    async def initialize(
        self,
        database_url: Optional[str] = None,
        extractor: Optional[DescriptorExtractor] = None,
    ) -> None:
        """Initialize all services in the correct order.

        Args:
            database_url: Overrides ``settings.DATABASE_URL``
            extractor: Overrides the default InsightFace extractor
        """
        self.database = Database(database_url)
        await self.database.create_all()

        self.extractor = extractor or build_default_extractor()
        await self.extractor.initialize()

        self.identity_provider = DatabaseIdentityProvider(self.database)
        self.match_registry = MatchRegistry(
            database=self.database,
            identity_provider=self.identity_provider,
            duplicate_policy=DuplicateMatchPolicy(settings.DUPLICATE_MATCH_POLICY)
        )
        self.enrollment_service = EnrollmentService(
            database=self.database,
            identity_provider=self.identity_provider,
            min_samples=settings.ENROLLMENT_MIN_SAMPLES,
            max_samples=settings.ENROLLMENT_MAX_SAMPLES
        )
        self.photo_matching_service = PhotoMatchingService(
            extractor=self.extractor,
            enrollment_service=self.enrollment_service,
            registry=self.match_registry,
            identity_provider=self.identity_provider,
            database=self.database,
            threshold=settings.MATCH_THRESHOLD,
            failure_policy=RecordFailurePolicy(settings.RECORD_FAILURE_POLICY)
        )

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        # Cleanup domain services
        self.photo_matching_service = None
        self.enrollment_service = None
        self.match_registry = None
        self.identity_provider = None

        # Cleanup core services
        if self.extractor:
            await self.extractor.close()
            self.extractor = None

        if self.database:
            await self.database.dispose()
            self.database = None


# Global container instance
container = ServiceContainer()
