"""Matching every face in an event photo against the enrollment gallery."""
import asyncio
from typing import Dict, List, Optional, Tuple, Union

from app.core.exceptions import (
    ExtractionFailedError,
    FaceMatchingError,
    ForbiddenError,
    InternalFailureError,
    NotFoundError,
)
from app.core.logging import get_logger
from app.domain.entities.face import FaceDetection
from app.domain.entities.identity import Role
from app.domain.entities.match import FaceMatch
from app.domain.interfaces.identity import IdentityProvider
from app.domain.interfaces.recognition import DescriptorExtractor
from app.domain.value_objects.policies import DuplicateMatchPolicy, RecordFailurePolicy
from app.domain.value_objects.recognition import (
    DetectionFailure,
    GalleryEntry,
    MatchCandidate,
    PhotoMatchReport,
)
from app.infrastructure.database.session import Database
from app.services.enrollment import EnrollmentService
from app.services.match_registry import MatchRegistry
from app.services.similarity_matcher import DEFAULT_THRESHOLD, match

logger = get_logger(__name__)

IndexedCandidate = Tuple[int, MatchCandidate]


class PhotoMatchingService:
    """Service that turns one photo into recorded face matches.

    This service:
    1. Extracts face detections from the photo
    2. Loads the enrollment gallery fresh for this run
    3. Matches every detection against the gallery
    4. Records accepted matches concurrently, one task per detection
    5. Reports created matches and per-detection failures

    Example:
        ```python
        service = PhotoMatchingService(
            extractor=extractor,
            enrollment_service=enrollment_service,
            registry=registry,
            identity_provider=identity_provider,
            database=database,
        )
        report = await service.process_photo("photo-1", image_bytes, caller_id="user-3")
        print(report.message)
        ```
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        enrollment_service: EnrollmentService,
        registry: MatchRegistry,
        identity_provider: IdentityProvider,
        database: Database,
        threshold: float = DEFAULT_THRESHOLD,
        failure_policy: RecordFailurePolicy = RecordFailurePolicy.COLLECT,
    ) -> None:
        """Initialize the photo matching service.

        Args:
            extractor: Produces face detections with descriptors
            enrollment_service: Source of the gallery
            registry: Destination of accepted matches
            identity_provider: Resolves callers for authorization
            database: Used to look up the photo being processed
            threshold: Minimum confidence for accepting a match
            failure_policy: Reaction to a failed match write
        """
        self._extractor = extractor
        self._enrollment_service = enrollment_service
        self._registry = registry
        self._identity_provider = identity_provider
        self._database = database
        self.threshold = threshold
        self.failure_policy = failure_policy

    async def process_photo(
        self,
        photo_id: str,
        image_bytes: bytes,
        caller_id: Optional[str] = None,
    ) -> PhotoMatchReport:
        """Detect, match and record every face in a photo.

        Args:
            photo_id: Registered photo the image belongs to
            image_bytes: Encoded image data
            caller_id: Caller to authorize; None for trusted internal callers

        Returns:
            PhotoMatchReport with the recorded matches and any per-detection failures

        Raises:
            UnauthorizedError: If the caller cannot be resolved
            ForbiddenError: If the caller may not trigger matching for this photo
            NotFoundError: If the photo does not exist
            ExtractionFailedError: If the image cannot be processed; nothing is recorded
            InternalFailureError: Under the ABORT policy, if any match write failed
        """
        await self._authorize(photo_id, caller_id)

        try:
            detections = await self._extractor.extract(image_bytes)
        except ExtractionFailedError as e:
            logger.error(
                "Descriptor extraction failed",
                photo_id=photo_id,
                error=str(e),
                details=e.details
            )
            raise

        report = PhotoMatchReport(photo_id=photo_id, detections_count=len(detections))
        if not detections:
            logger.info("No faces detected in photo", photo_id=photo_id)
            return report

        gallery = await self._enrollment_service.load_gallery()
        logger.info(
            "Matching detected faces",
            photo_id=photo_id,
            detections_count=len(detections),
            gallery_size=len(gallery),
            threshold=self.threshold
        )

        accepted: List[IndexedCandidate] = []
        for index, detection in enumerate(detections):
            outcome = self._match_detection(index, detection, gallery)
            if isinstance(outcome, DetectionFailure):
                report.failures.append(outcome)
            elif outcome is None:
                report.unmatched_count += 1
            else:
                accepted.append((index, outcome))

        to_record = accepted
        if self._registry.duplicate_policy is DuplicateMatchPolicy.KEEP_HIGHEST:
            to_record = self._best_per_person(accepted)
            report.superseded_count = len(accepted) - len(to_record)

        results = await asyncio.gather(
            *(self._record(photo_id, index, candidate) for index, candidate in to_record)
        )
        for result in results:
            if isinstance(result, DetectionFailure):
                report.failures.append(result)
                continue
            face_match, created = result
            if created:
                report.matches.append(face_match)
            else:
                report.retained.append(face_match)
        report.failures.sort(key=lambda failure: failure.detection_index)

        logger.info(
            "Finished matching photo",
            photo_id=photo_id,
            matches_count=len(report.matches),
            retained_count=len(report.retained),
            unmatched_count=report.unmatched_count,
            failures_count=len(report.failures)
        )

        if report.failures and self.failure_policy is RecordFailurePolicy.ABORT:
            raise InternalFailureError(
                f"Failed to process {len(report.failures)} of {len(detections)} detections",
                details={
                    "failed_detections": [failure.model_dump() for failure in report.failures],
                    "recorded_match_ids": [face_match.id for face_match in report.matches],
                }
            )
        return report

    async def _authorize(self, photo_id: str, caller_id: Optional[str]) -> None:
        scope = None
        if caller_id is not None:
            scope = await self._identity_provider.resolve(caller_id)
            if scope.role not in (Role.PHOTOGRAPHER, Role.ADMIN):
                raise ForbiddenError("Only photographers can match photos")

        async with self._database.unit_of_work() as uow:
            photo = await uow.photos.get(photo_id)
        if photo is None:
            raise NotFoundError(f"Photo not found: {photo_id}", details={"photo_id": photo_id})

        if scope is not None and not scope.can_access_photo(photo_id):
            raise ForbiddenError(
                "Photo belongs to another photographer",
                details={"photo_id": photo_id}
            )

    def _match_detection(
        self,
        index: int,
        detection: FaceDetection,
        gallery: List[GalleryEntry],
    ) -> Union[MatchCandidate, DetectionFailure, None]:
        if not detection.has_descriptor:
            return DetectionFailure(
                detection_index=index,
                code="ValidationFailed",
                message="Detection has no descriptor"
            )
        try:
            return match(detection.descriptor, gallery, self.threshold, detection.bounding_box)
        except FaceMatchingError as e:
            logger.warning("Could not match detection", detection_index=index, error=str(e))
            return DetectionFailure(detection_index=index, code=e.code, message=e.message)

    @staticmethod
    def _best_per_person(accepted: List[IndexedCandidate]) -> List[IndexedCandidate]:
        """Keep the most confident detection per person; ties keep the earlier one."""
        best: Dict[str, IndexedCandidate] = {}
        for index, candidate in accepted:
            current = best.get(candidate.person_id)
            if current is None or candidate.confidence > current[1].confidence:
                best[candidate.person_id] = (index, candidate)
        return sorted(best.values(), key=lambda item: item[0])

    async def _record(
        self,
        photo_id: str,
        index: int,
        candidate: MatchCandidate,
    ) -> Union[Tuple[FaceMatch, bool], DetectionFailure]:
        try:
            return await self._registry.store_match(
                photo_id=photo_id,
                person_id=candidate.person_id,
                confidence=candidate.confidence,
                bounding_box=candidate.bounding_box,
            )
        except FaceMatchingError as e:
            logger.error(
                "Failed to record face match",
                photo_id=photo_id,
                person_id=candidate.person_id,
                detection_index=index,
                error=str(e)
            )
            return DetectionFailure(detection_index=index, code=e.code, message=e.message)
        except Exception as e:
            logger.error(
                "Unexpected error recording face match",
                photo_id=photo_id,
                person_id=candidate.person_id,
                detection_index=index,
                error=str(e),
                exc_info=True
            )
            return DetectionFailure(
                detection_index=index,
                code=InternalFailureError.code,
                message="Failed to store face match"
            )
