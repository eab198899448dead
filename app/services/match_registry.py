"""Persistence and lifecycle of accepted face matches."""
from typing import List, Optional, Set, Tuple

from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.logging import get_logger
from app.domain.entities.face import BoundingBox
from app.domain.entities.identity import CallerScope, Role
from app.domain.entities.match import FaceMatch
from app.domain.interfaces.identity import IdentityProvider
from app.domain.value_objects.policies import DuplicateMatchPolicy
from app.infrastructure.database.repositories import to_face_match
from app.infrastructure.database.session import Database

logger = get_logger(__name__)


class MatchRegistry:
    """Stores face matches and keeps each photo's match counter in step.

    Every write runs in its own transaction. The counter is moved with an atomic
    SQL increment in the same transaction as the row it counts, so concurrent
    writes for one photo never lose an update.

    Listing is always scoped by the caller's identity, resolved afresh through the
    identity provider; client-supplied filters can only narrow that scope.

    Example:
        ```python
        registry = MatchRegistry(database, identity_provider)
        face_match = await registry.record_match("photo-1", "person-7", 0.83, box)
        await registry.set_approval(face_match.id, True)
        matches = await registry.list_matches(caller_id="user-42")
        ```
    """

    def __init__(
        self,
        database: Database,
        identity_provider: IdentityProvider,
        duplicate_policy: DuplicateMatchPolicy = DuplicateMatchPolicy.KEEP_HIGHEST,
    ) -> None:
        """Initialize the registry.

        Args:
            database: Database holding photos, persons and matches
            identity_provider: Resolves callers into access scopes
            duplicate_policy: Handling of repeated matches for one (photo, person)
        """
        self._database = database
        self._identity_provider = identity_provider
        self.duplicate_policy = duplicate_policy

    async def record_match(
        self,
        photo_id: str,
        person_id: str,
        confidence: float,
        bounding_box: BoundingBox,
    ) -> FaceMatch:
        """Record an unapproved match and count it on the photo.

        Returns:
            FaceMatch: The inserted, updated or retained match
        """
        face_match, _ = await self.store_match(photo_id, person_id, confidence, bounding_box)
        return face_match

    async def store_match(
        self,
        photo_id: str,
        person_id: str,
        confidence: float,
        bounding_box: BoundingBox,
    ) -> Tuple[FaceMatch, bool]:
        """Record a match and tell whether a new row was created.

        Under KEEP_HIGHEST an existing match for the same person on the same photo
        is kept unless the new confidence is strictly higher, in which case its
        confidence and box are replaced and its approval reset. The counter only
        moves when a row is inserted. The photo row is locked first, so two
        writers for one photo cannot both miss the existing match and insert.

        Args:
            photo_id: Photo the face was found in
            person_id: Matched person
            confidence: Match confidence in [0, 1]
            bounding_box: Box of the detection that produced the match

        Returns:
            (match, created): the inserted, updated or retained match, and
            whether it was inserted by this call

        Raises:
            NotFoundError: If the photo or person does not exist
        """
        async with self._database.unit_of_work() as uow:
            if await uow.photos.get_for_update(photo_id) is None:
                raise NotFoundError(f"Photo not found: {photo_id}", details={"photo_id": photo_id})
            if await uow.persons.get(person_id) is None:
                raise NotFoundError(f"Person not found: {person_id}", details={"person_id": person_id})

            if self.duplicate_policy is DuplicateMatchPolicy.KEEP_HIGHEST:
                existing = await uow.matches.find_for_photo_and_person(photo_id, person_id)
                if existing is not None:
                    if confidence > existing.confidence:
                        await uow.matches.replace_detection(existing, confidence, bounding_box)
                        logger.info(
                            "Replaced match with a more confident detection",
                            match_id=existing.id,
                            photo_id=photo_id,
                            person_id=person_id,
                            confidence=confidence
                        )
                    else:
                        logger.debug(
                            "Kept existing match",
                            match_id=existing.id,
                            photo_id=photo_id,
                            person_id=person_id
                        )
                    return to_face_match(existing), False

            record = await uow.matches.create(photo_id, person_id, confidence, bounding_box)
            await uow.photos.adjust_match_count(photo_id, 1)

            logger.info(
                "Recorded face match",
                match_id=record.id,
                photo_id=photo_id,
                person_id=person_id,
                confidence=confidence
            )
            return to_face_match(record), True

    async def list_matches(
        self,
        caller_id: Optional[str],
        photo_id: Optional[str] = None,
        person_id: Optional[str] = None,
        approved: Optional[bool] = None,
    ) -> List[FaceMatch]:
        """List the matches visible to the caller, newest first.

        Args:
            caller_id: Authenticated caller; their scope is resolved here
            photo_id: Optional filter, must lie within the caller's scope
            person_id: Optional filter, must lie within the caller's scope
            approved: Optional approval-state filter

        Returns:
            List[FaceMatch]: Matches in the caller's scope that satisfy the filters

        Raises:
            UnauthorizedError: If the caller cannot be resolved
            ForbiddenError: If a filter names a photo or person outside the caller's scope
            NotFoundError: If a person caller has no person profile
        """
        scope = await self._identity_provider.resolve(caller_id)
        photo_ids, person_ids = self._scoped_filters(scope, photo_id, person_id)

        async with self._database.unit_of_work() as uow:
            records = await uow.matches.list_filtered(
                photo_ids=photo_ids,
                person_ids=person_ids,
                approved=approved
            )
            matches = [to_face_match(record) for record in records]

        logger.debug(
            "Listed face matches",
            caller_id=scope.caller_id,
            role=scope.role.value,
            matches_count=len(matches)
        )
        return matches

    async def get_match(self, match_id: str, caller_id: Optional[str] = None) -> FaceMatch:
        """Get one match.

        Raises:
            NotFoundError: If the match does not exist
            ForbiddenError: If a caller is given and the match is outside their scope
        """
        scope = await self._resolve_optional(caller_id)
        async with self._database.unit_of_work() as uow:
            record = await uow.matches.get(match_id)
            if record is None:
                raise NotFoundError(f"Face match not found: {match_id}", details={"match_id": match_id})
            self._check_access(scope, record.photo_id, record.person_id)
            return to_face_match(record)

    async def set_approval(
        self,
        match_id: str,
        approved: bool,
        caller_id: Optional[str] = None,
    ) -> FaceMatch:
        """Approve or reject a match. Repeating the same call changes nothing.

        Raises:
            NotFoundError: If the match does not exist
            ForbiddenError: If a caller is given and the match is outside their scope
        """
        scope = await self._resolve_optional(caller_id)
        async with self._database.unit_of_work() as uow:
            record = await uow.matches.get(match_id)
            if record is None:
                raise NotFoundError(f"Face match not found: {match_id}", details={"match_id": match_id})
            self._check_access(scope, record.photo_id, record.person_id)

            if record.approved != approved:
                await uow.matches.set_approval(record, approved)
                logger.info("Changed match approval", match_id=match_id, approved=approved)
            return to_face_match(record)

    async def delete_match(self, match_id: str, caller_id: Optional[str] = None) -> None:
        """Delete a match and decrement its photo's counter.

        Raises:
            NotFoundError: If the match does not exist
            ForbiddenError: If a caller is given and the match is outside their scope
        """
        scope = await self._resolve_optional(caller_id)
        async with self._database.unit_of_work() as uow:
            record = await uow.matches.get(match_id)
            if record is None:
                raise NotFoundError(f"Face match not found: {match_id}", details={"match_id": match_id})
            self._check_access(scope, record.photo_id, record.person_id)

            photo_id = record.photo_id
            # Only the writer whose DELETE removed the row may decrement
            if await uow.matches.delete(match_id) == 0:
                raise NotFoundError(f"Face match not found: {match_id}", details={"match_id": match_id})
            await uow.photos.adjust_match_count(photo_id, -1)

        logger.info("Deleted face match", match_id=match_id, photo_id=photo_id)

    async def photo_match_count(self, photo_id: str) -> int:
        """Current value of the photo's denormalized match counter.

        Raises:
            NotFoundError: If the photo does not exist
        """
        async with self._database.unit_of_work() as uow:
            count = await uow.photos.get_match_count(photo_id)
        if count is None:
            raise NotFoundError(f"Photo not found: {photo_id}", details={"photo_id": photo_id})
        return count

    async def _resolve_optional(self, caller_id: Optional[str]) -> Optional[CallerScope]:
        if caller_id is None:
            return None
        return await self._identity_provider.resolve(caller_id)

    @staticmethod
    def _check_access(scope: Optional[CallerScope], photo_id: str, person_id: str) -> None:
        if scope is not None and not scope.can_access_match(photo_id, person_id):
            raise ForbiddenError("Face match is outside the caller's scope")

    @staticmethod
    def _scoped_filters(
        scope: CallerScope,
        photo_id: Optional[str],
        person_id: Optional[str],
    ) -> Tuple[Optional[Set[str]], Optional[Set[str]]]:
        """Intersect client filters with the caller's scope.

        Returns:
            (photo_ids, person_ids) restrictions, None meaning unrestricted
        """
        photo_ids: Optional[Set[str]] = {photo_id} if photo_id is not None else None
        person_ids: Optional[Set[str]] = {person_id} if person_id is not None else None

        if scope.role is Role.ADMIN:
            return photo_ids, person_ids

        if scope.role is Role.PHOTOGRAPHER:
            if photo_id is not None and photo_id not in scope.photo_ids:
                raise ForbiddenError("Photo is outside the caller's scope", details={"photo_id": photo_id})
            return photo_ids if photo_ids is not None else set(scope.photo_ids), person_ids

        # Person: only their own record, whatever the request says
        if scope.person_id is None:
            raise NotFoundError("Person profile not found", details={"caller_id": scope.caller_id})
        if person_id is not None and person_id != scope.person_id:
            raise ForbiddenError("Person is outside the caller's scope", details={"person_id": person_id})
        return photo_ids, {scope.person_id}
