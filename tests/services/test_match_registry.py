"""Tests for the match registry: counter consistency, approval and scoping."""
import asyncio

import pytest
from sqlalchemy.dialects import postgresql

from app.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from app.domain.value_objects.policies import DuplicateMatchPolicy
from app.infrastructure.database.repositories import PhotoRepository
from app.services.match_registry import MatchRegistry
from tests.conftest import (
    ADMIN,
    OTHER_PERSON,
    OTHER_PHOTO,
    OTHER_PHOTOGRAPHER,
    PERSON,
    PERSON_USER,
    PHOTO,
    PHOTOGRAPHER,
    UNPROFILED_USER,
    box,
    count_match_rows,
)


class TestRecordMatch:
    """Test suite for recording matches."""

    async def test_records_unapproved_match(self, registry):
        """Should store the match unapproved and count it on the photo."""
        face_match = await registry.record_match(PHOTO, PERSON, 0.83, box(x=1, y=2, width=30, height=40))

        assert face_match.photo_id == PHOTO
        assert face_match.person_id == PERSON
        assert face_match.confidence == pytest.approx(0.83)
        assert face_match.approved is False
        assert face_match.bounding_box == box(x=1, y=2, width=30, height=40)
        assert await registry.photo_match_count(PHOTO) == 1

    async def test_concurrent_records_for_one_photo(self, registry, database):
        """Should count both of two concurrent matches on the same photo."""
        first, second = await asyncio.gather(
            registry.record_match(PHOTO, PERSON, 0.9, box()),
            registry.record_match(PHOTO, OTHER_PERSON, 0.8, box(x=20)),
        )

        assert first.id != second.id
        assert await registry.photo_match_count(PHOTO) == 2
        assert await count_match_rows(database, PHOTO) == 2

    async def test_unknown_photo(self, registry):
        with pytest.raises(NotFoundError):
            await registry.record_match("missing", PERSON, 0.9, box())

    async def test_unknown_person(self, registry, database):
        """Should refuse the write and leave the counter alone."""
        with pytest.raises(NotFoundError):
            await registry.record_match(PHOTO, "missing", 0.9, box())

        assert await registry.photo_match_count(PHOTO) == 0

    async def test_keep_highest_replaces_weaker_match(self, registry, database):
        """Should keep one row per person, updated only by a more confident detection."""
        original = await registry.record_match(PHOTO, PERSON, 0.7, box())
        await registry.set_approval(original.id, True)

        weaker = await registry.record_match(PHOTO, PERSON, 0.65, box(x=50))
        assert weaker.id == original.id
        assert weaker.confidence == pytest.approx(0.7)
        assert weaker.approved is True

        stronger = await registry.record_match(PHOTO, PERSON, 0.9, box(x=80))
        assert stronger.id == original.id
        assert stronger.confidence == pytest.approx(0.9)
        assert stronger.bounding_box.x == 80
        assert stronger.approved is False

        assert await registry.photo_match_count(PHOTO) == 1
        assert await count_match_rows(database, PHOTO) == 1

    async def test_allow_policy_keeps_duplicates(self, database, identity_provider):
        """Should insert a new row for every recorded match under ALLOW."""
        registry = MatchRegistry(database, identity_provider, DuplicateMatchPolicy.ALLOW)

        first = await registry.record_match(PHOTO, PERSON, 0.7, box())
        second = await registry.record_match(PHOTO, PERSON, 0.9, box(x=50))

        assert first.id != second.id
        assert await registry.photo_match_count(PHOTO) == 2
        assert await count_match_rows(database, PHOTO) == 2

    async def test_concurrent_duplicates_under_keep_highest(self, registry, database):
        """Should store a single row when the same person is recorded twice at once."""
        results = await asyncio.gather(
            registry.store_match(PHOTO, PERSON, 0.7, box()),
            registry.store_match(PHOTO, PERSON, 0.9, box(x=50)),
        )

        assert sorted(created for _, created in results) == [False, True]
        assert len({face_match.id for face_match, _ in results}) == 1
        assert await count_match_rows(database, PHOTO) == 1
        assert await registry.photo_match_count(PHOTO) == 1

    def test_duplicate_check_locks_the_photo_row(self):
        """Should lock the photo row on backends with row locks."""
        statement = PhotoRepository.locking_select(PHOTO)

        assert "FOR UPDATE" in str(statement.compile(dialect=postgresql.dialect()))


class TestApprovalAndDeletion:
    """Test suite for approval and deletion."""

    async def test_approval_is_idempotent(self, registry):
        """Should leave the match unchanged when the same approval is repeated."""
        face_match = await registry.record_match(PHOTO, PERSON, 0.9, box())

        await registry.set_approval(face_match.id, True)
        stored = await registry.get_match(face_match.id)
        again = await registry.set_approval(face_match.id, True)

        assert stored.approved is True
        assert again.approved is True
        assert again.updated_at == stored.updated_at

        rejected = await registry.set_approval(face_match.id, False)
        assert rejected.approved is False

    async def test_approve_missing_match(self, registry):
        with pytest.raises(NotFoundError):
            await registry.set_approval("missing", True)

    async def test_delete_decrements_counter(self, registry, database):
        face_match = await registry.record_match(PHOTO, PERSON, 0.9, box())

        await registry.delete_match(face_match.id)

        assert await registry.photo_match_count(PHOTO) == 0
        assert await count_match_rows(database, PHOTO) == 0
        with pytest.raises(NotFoundError):
            await registry.get_match(face_match.id)

    async def test_delete_missing_match(self, registry):
        """Should raise and leave the counter untouched."""
        with pytest.raises(NotFoundError):
            await registry.delete_match("missing")

        assert await registry.photo_match_count(PHOTO) == 0

    async def test_counter_matches_rows_after_concurrent_writes(self, database, identity_provider):
        """Should keep the counter equal to the surviving rows under concurrent record and delete."""
        registry = MatchRegistry(database, identity_provider, DuplicateMatchPolicy.ALLOW)
        existing = [await registry.record_match(PHOTO, PERSON, 0.8, box()) for _ in range(4)]

        results = await asyncio.gather(
            *(registry.record_match(PHOTO, OTHER_PERSON, 0.7, box(x=i)) for i in range(6)),
            *(registry.delete_match(face_match.id) for face_match in existing[:3]),
            registry.delete_match(existing[0].id),
            return_exceptions=True
        )

        not_found = [result for result in results if isinstance(result, NotFoundError)]
        assert len(not_found) == 1
        assert not [r for r in results if isinstance(r, Exception) and not isinstance(r, NotFoundError)]
        assert await count_match_rows(database, PHOTO) == 7
        assert await registry.photo_match_count(PHOTO) == 7


class TestScoping:
    """Test suite for caller-scoped access."""

    @pytest.fixture
    async def matches(self, registry):
        return {
            "own_photo_person": await registry.record_match(PHOTO, PERSON, 0.9, box()),
            "own_photo_other": await registry.record_match(PHOTO, OTHER_PERSON, 0.8, box(x=30)),
            "other_photo_person": await registry.record_match(OTHER_PHOTO, PERSON, 0.7, box()),
        }

    async def test_person_sees_only_own_matches(self, registry, matches):
        """Should never return another person's match to a person caller."""
        result = await registry.list_matches(PERSON_USER)

        assert {m.person_id for m in result} == {PERSON}
        assert len(result) == 2

    async def test_person_cannot_widen_scope(self, registry, matches):
        """Should reject a person filter naming someone else."""
        with pytest.raises(ForbiddenError):
            await registry.list_matches(PERSON_USER, person_id=OTHER_PERSON)

    async def test_person_photo_filter_stays_scoped(self, registry, matches):
        result = await registry.list_matches(PERSON_USER, photo_id=PHOTO)

        assert [m.id for m in result] == [matches["own_photo_person"].id]

    async def test_person_without_profile(self, registry, matches):
        """Should report the missing profile instead of an empty list."""
        with pytest.raises(NotFoundError):
            await registry.list_matches(UNPROFILED_USER)

    async def test_photographer_sees_own_photos(self, registry, matches):
        result = await registry.list_matches(PHOTOGRAPHER)

        assert {m.photo_id for m in result} == {PHOTO}
        assert len(result) == 2

    async def test_photographer_cannot_list_foreign_photo(self, registry, matches):
        with pytest.raises(ForbiddenError):
            await registry.list_matches(PHOTOGRAPHER, photo_id=OTHER_PHOTO)

    async def test_admin_sees_everything(self, registry, matches):
        result = await registry.list_matches(ADMIN)

        assert len(result) == 3

    async def test_filters_by_approval(self, registry, matches):
        await registry.set_approval(matches["own_photo_other"].id, True)

        approved = await registry.list_matches(ADMIN, approved=True)
        pending = await registry.list_matches(ADMIN, approved=False, photo_id=PHOTO)

        assert [m.id for m in approved] == [matches["own_photo_other"].id]
        assert [m.id for m in pending] == [matches["own_photo_person"].id]

    async def test_newest_first(self, registry, matches):
        result = await registry.list_matches(ADMIN)

        created = [m.created_at for m in result]
        assert created == sorted(created, reverse=True)

    async def test_unknown_caller(self, registry, matches):
        with pytest.raises(UnauthorizedError):
            await registry.list_matches("nobody")

    async def test_missing_caller(self, registry):
        with pytest.raises(UnauthorizedError):
            await registry.list_matches(None)

    async def test_foreign_photographer_cannot_approve(self, registry, matches):
        with pytest.raises(ForbiddenError):
            await registry.set_approval(matches["own_photo_person"].id, True, caller_id=OTHER_PHOTOGRAPHER)

    async def test_scope_follows_ownership_changes(self, registry, database, matches):
        """Should resolve the caller's photos on every call."""
        async with database.unit_of_work() as uow:
            photo = await uow.photos.get(OTHER_PHOTO)
            photo.photographer_id = PHOTOGRAPHER

        result = await registry.list_matches(PHOTOGRAPHER)

        assert len(result) == 3
