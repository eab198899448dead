"""Database repositories for the face matching service."""
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import Select, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.entities.face import BoundingBox
from app.domain.entities.match import FaceMatch
from app.infrastructure.database.models import FaceMatchRecord, Person, Photo, User, utc_now


def to_face_match(record: FaceMatchRecord) -> FaceMatch:
    """Convert a face match row into the domain entity."""
    return FaceMatch(
        id=record.id,
        photo_id=record.photo_id,
        person_id=record.person_id,
        confidence=record.confidence,
        bounding_box=BoundingBox(
            x=record.bbox_x,
            y=record.bbox_y,
            width=record.bbox_width,
            height=record.bbox_height
        ),
        approved=record.approved,
        created_at=record.created_at,
        updated_at=record.updated_at
    )


class UserRepository:
    """Repository for user lookups."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> Optional[User]:
        return await self._session.get(User, user_id)


class PersonRepository:
    """Repository for persons and their enrollment records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get(self, person_id: str) -> Optional[Person]:
        return await self._session.get(Person, person_id)

    async def get_by_user_id(self, user_id: str) -> Optional[Person]:
        stmt = select(Person).where(Person.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_enrollment(
        self,
        person: Person,
        descriptor: List[float],
        samples: List[Dict[str, Any]]
    ) -> Person:
        """Replace the person's enrollment record wholesale.

        Args:
            person: Person row to update
            descriptor: Representative descriptor
            samples: Retained samples as JSON-ready dicts

        Returns:
            Person: Updated person row
        """
        person.representative_descriptor = descriptor
        person.source_samples = samples
        person.enrollment_updated_at = utc_now()
        await self._session.flush()
        return person

    async def list_enrolled(self) -> List[Person]:
        """Get every person that has a representative descriptor."""
        stmt = (
            select(Person)
            .where(Person.representative_descriptor.is_not(None))
            .order_by(Person.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class PhotoRepository:
    """Repository for photo lookups and the denormalized match counter."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get(self, photo_id: str) -> Optional[Photo]:
        return await self._session.get(Photo, photo_id)

    @staticmethod
    def locking_select(photo_id: str) -> Select:
        return select(Photo).where(Photo.id == photo_id).with_for_update()

    async def get_for_update(self, photo_id: str) -> Optional[Photo]:
        """Get the photo and hold a row lock on it until the transaction ends.

        Match writes for one photo take this lock first, so the duplicate check
        and the insert that follows cannot interleave with another writer.
        SQLite has no row locks; there the transaction itself is taken with
        BEGIN IMMEDIATE.
        """
        result = await self._session.execute(self.locking_select(photo_id))
        return result.scalar_one_or_none()

    async def ids_for_photographer(self, photographer_id: str) -> Set[str]:
        stmt = select(Photo.id).where(Photo.photographer_id == photographer_id)
        result = await self._session.execute(stmt)
        return set(result.scalars().all())

    async def adjust_match_count(self, photo_id: str, delta: int) -> int:
        """Atomically add ``delta`` to the photo's match counter.

        The arithmetic happens inside the UPDATE statement, so concurrent
        writers never overwrite each other's increments.

        Returns:
            int: Number of photo rows updated (0 if the photo is gone)
        """
        stmt = (
            update(Photo)
            .where(Photo.id == photo_id)
            .values(
                face_match_count=Photo.face_match_count + delta,
                updated_at=utc_now()
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def get_match_count(self, photo_id: str) -> Optional[int]:
        stmt = select(Photo.face_match_count).where(Photo.id == photo_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class FaceMatchRepository:
    """Repository for face match rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def create(
        self,
        photo_id: str,
        person_id: str,
        confidence: float,
        bounding_box: BoundingBox
    ) -> FaceMatchRecord:
        """Create a new, unapproved face match row.

        Args:
            photo_id: Photo the face was found in
            person_id: Matched person
            confidence: Match confidence in [0, 1]
            bounding_box: Box of the detection that produced the match

        Returns:
            FaceMatchRecord: Created row
        """
        now = utc_now()
        record = FaceMatchRecord(
            photo_id=photo_id,
            person_id=person_id,
            confidence=confidence,
            bbox_x=bounding_box.x,
            bbox_y=bounding_box.y,
            bbox_width=bounding_box.width,
            bbox_height=bounding_box.height,
            approved=False,
            created_at=now,
            updated_at=now
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def get(self, match_id: str) -> Optional[FaceMatchRecord]:
        return await self._session.get(FaceMatchRecord, match_id)

    async def find_for_photo_and_person(
        self,
        photo_id: str,
        person_id: str
    ) -> Optional[FaceMatchRecord]:
        """Get the most confident match of ``person_id`` on ``photo_id``, if any."""
        stmt = (
            select(FaceMatchRecord)
            .where(
                FaceMatchRecord.photo_id == photo_id,
                FaceMatchRecord.person_id == person_id
            )
            .order_by(FaceMatchRecord.confidence.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        photo_ids: Optional[Set[str]] = None,
        person_ids: Optional[Set[str]] = None,
        approved: Optional[bool] = None
    ) -> List[FaceMatchRecord]:
        """List matches, newest first.

        Args:
            photo_ids: Restrict to these photos (None for no restriction)
            person_ids: Restrict to these persons (None for no restriction)
            approved: Restrict to this approval state (None for both)

        Returns:
            List[FaceMatchRecord]: Matching rows
        """
        stmt = select(FaceMatchRecord)
        if photo_ids is not None:
            if not photo_ids:
                return []
            stmt = stmt.where(FaceMatchRecord.photo_id.in_(photo_ids))
        if person_ids is not None:
            if not person_ids:
                return []
            stmt = stmt.where(FaceMatchRecord.person_id.in_(person_ids))
        if approved is not None:
            stmt = stmt.where(FaceMatchRecord.approved == approved)
        stmt = stmt.order_by(FaceMatchRecord.created_at.desc(), FaceMatchRecord.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def set_approval(self, record: FaceMatchRecord, approved: bool) -> FaceMatchRecord:
        record.approved = approved
        record.updated_at = utc_now()
        await self._session.flush()
        return record

    async def replace_detection(
        self,
        record: FaceMatchRecord,
        confidence: float,
        bounding_box: BoundingBox
    ) -> FaceMatchRecord:
        """Point an existing match at a more confident detection.

        The approval is reset, since a reviewer approved a different box.
        """
        record.confidence = confidence
        record.bbox_x = bounding_box.x
        record.bbox_y = bounding_box.y
        record.bbox_width = bounding_box.width
        record.bbox_height = bounding_box.height
        record.approved = False
        record.updated_at = utc_now()
        await self._session.flush()
        return record

    async def delete(self, match_id: str) -> int:
        """Delete a match row.

        Returns:
            int: Number of rows deleted
        """
        stmt = delete(FaceMatchRecord).where(FaceMatchRecord.id == match_id)
        result = await self._session.execute(stmt)
        return result.rowcount
