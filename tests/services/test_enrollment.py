"""Tests for the enrollment service and gallery loading."""
import numpy as np
import pytest

from app.core.exceptions import ForbiddenError, InsufficientSamplesError, NotFoundError
from tests.conftest import (
    OTHER_PERSON,
    PERSON,
    PERSON_USER,
    PHOTOGRAPHER,
    UNPROFILED_USER,
    detection,
    enroll_directly,
)


class TestEnrollmentService:
    """Test suite for storing enrollment records."""

    async def test_enroll_caller_stores_record(self, enrollment_service, database):
        """Should store the mean descriptor and the retained samples on the caller's person."""
        samples = [detection([1, 1], 10), detection([3, 3], 20), detection([2, 2], 15)]

        result = await enrollment_service.enroll_caller(PERSON_USER, samples)

        assert np.allclose(result.descriptor, [2, 2])
        async with database.unit_of_work() as uow:
            person = await uow.persons.get(PERSON)
        assert person.representative_descriptor == pytest.approx([2.0, 2.0])
        assert [s["descriptor"] for s in person.source_samples] == [[3.0, 3.0], [2.0, 2.0], [1.0, 1.0]]
        assert person.source_samples[0]["bounding_box"]["width"] == 20
        assert person.enrollment_updated_at is not None

    async def test_resubmission_overwrites(self, enrollment_service, database):
        """Should replace the previous record wholesale."""
        await enrollment_service.enroll(PERSON, [detection([1, 1])] * 5)
        await enrollment_service.enroll(PERSON, [detection([4, 4])] * 3)

        async with database.unit_of_work() as uow:
            person = await uow.persons.get(PERSON)
        assert person.representative_descriptor == pytest.approx([4.0, 4.0])
        assert len(person.source_samples) == 3

    async def test_too_few_samples_leave_record_absent(self, enrollment_service, database):
        with pytest.raises(InsufficientSamplesError):
            await enrollment_service.enroll_caller(PERSON_USER, [detection([1, 1]), detection([2, 2])])

        async with database.unit_of_work() as uow:
            person = await uow.persons.get(PERSON)
        assert person.representative_descriptor is None

    async def test_photographer_cannot_enroll(self, enrollment_service):
        with pytest.raises(ForbiddenError):
            await enrollment_service.enroll_caller(PHOTOGRAPHER, [detection([1, 1])] * 3)

    async def test_person_without_profile(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.enroll_caller(UNPROFILED_USER, [detection([1, 1])] * 3)

    async def test_unknown_person(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.enroll("missing", [detection([1, 1])] * 3)


class TestLoadGallery:
    """Test suite for reading the gallery."""

    async def test_empty_gallery(self, enrollment_service):
        assert await enrollment_service.load_gallery() == []

    async def test_only_enrolled_persons(self, enrollment_service, database):
        """Should leave out persons who never enrolled."""
        await enroll_directly(database, OTHER_PERSON, [0.5, 0.5])

        gallery = await enrollment_service.load_gallery()

        assert [entry.person_id for entry in gallery] == [OTHER_PERSON]
        assert np.allclose(gallery[0].descriptor, [0.5, 0.5])

    async def test_skips_corrupt_descriptor(self, enrollment_service, database):
        """Should skip a stored descriptor that is not a usable vector."""
        await enroll_directly(database, PERSON, [])
        await enroll_directly(database, OTHER_PERSON, [0.1, 0.2])

        gallery = await enrollment_service.load_gallery()

        assert [entry.person_id for entry in gallery] == [OTHER_PERSON]
