"""Enrollment of persons and loading of the matching gallery."""
from typing import List, Optional, Sequence

from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.logging import get_logger
from app.domain.entities.face import FaceDetection
from app.domain.entities.identity import Role
from app.domain.interfaces.identity import IdentityProvider
from app.domain.value_objects.recognition import EnrollmentAggregate, GalleryEntry
from app.infrastructure.database.session import Database
from app.services.enrollment_aggregator import (
    DEFAULT_MAX_SAMPLES,
    DEFAULT_MIN_SAMPLES,
    aggregate,
)

logger = get_logger(__name__)


class EnrollmentService:
    """Service for storing enrollment records and reading them back as a gallery.

    Example:
        ```python
        service = EnrollmentService(database, identity_provider)
        await service.enroll_caller(caller_id="user-7", samples=detections)
        gallery = await service.load_gallery()
        ```
    """

    def __init__(
        self,
        database: Database,
        identity_provider: IdentityProvider,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> None:
        self._database = database
        self._identity_provider = identity_provider
        self.min_samples = min_samples
        self.max_samples = max_samples

    async def enroll(self, person_id: str, samples: Sequence[FaceDetection]) -> EnrollmentAggregate:
        """Aggregate the samples and overwrite the person's enrollment record.

        Args:
            person_id: Person being enrolled
            samples: Face detections of that person

        Returns:
            EnrollmentAggregate that was stored

        Raises:
            InsufficientSamplesError: If fewer than ``min_samples`` samples are usable
            DescriptorDimensionMismatchError: If retained descriptors differ in length
            NotFoundError: If the person does not exist
        """
        result = aggregate(samples, self.min_samples, self.max_samples)

        async with self._database.unit_of_work() as uow:
            person = await uow.persons.get(person_id)
            if person is None:
                raise NotFoundError(f"Person not found: {person_id}", details={"person_id": person_id})

            await uow.persons.save_enrollment(
                person,
                descriptor=result.descriptor.tolist(),
                samples=[
                    {
                        "descriptor": sample.descriptor.tolist(),
                        "bounding_box": sample.bounding_box.model_dump(),
                    }
                    for sample in result.samples
                ],
            )

        logger.info(
            "Stored enrollment record",
            person_id=person_id,
            submitted_count=len(samples),
            retained_count=len(result.samples),
            dimension=int(result.descriptor.shape[0])
        )
        return result

    async def enroll_caller(
        self,
        caller_id: Optional[str],
        samples: Sequence[FaceDetection],
    ) -> EnrollmentAggregate:
        """Enroll the calling person from their own submitted samples.

        Raises:
            UnauthorizedError: If the caller cannot be resolved
            ForbiddenError: If the caller is not a person
            NotFoundError: If the caller has no person profile
            InsufficientSamplesError: If fewer than ``min_samples`` samples were submitted
        """
        scope = await self._identity_provider.resolve(caller_id)
        if scope.role is not Role.PERSON:
            raise ForbiddenError("Only persons can enroll face data")
        if scope.person_id is None:
            raise NotFoundError("Person profile not found", details={"caller_id": scope.caller_id})
        return await self.enroll(scope.person_id, samples)

    async def load_gallery(self) -> List[GalleryEntry]:
        """Load the representative descriptor of every enrolled person.

        Persons whose stored descriptor is unusable are skipped with a warning.
        """
        gallery: List[GalleryEntry] = []
        async with self._database.unit_of_work() as uow:
            persons = await uow.persons.list_enrolled()

        for person in persons:
            try:
                gallery.append(
                    GalleryEntry(person_id=person.id, descriptor=person.representative_descriptor)
                )
            except ValueError as e:
                logger.warning("Skipping invalid enrollment record", person_id=person.id, error=str(e))

        logger.debug("Loaded enrollment gallery", gallery_size=len(gallery))
        return gallery
