"""Shared fixtures: a file-backed SQLite database per test and a stub extractor."""
from typing import List, Optional, Sequence

import pytest
from sqlalchemy import func, select

from app.core.container import ServiceContainer
from app.domain.entities.face import BoundingBox, FaceDetection
from app.domain.interfaces.recognition import DescriptorExtractor
from app.infrastructure.database.models import FaceMatchRecord, Person, Photo, User
from app.infrastructure.database.session import Database
from app.services.enrollment import EnrollmentService
from app.services.identity import DatabaseIdentityProvider
from app.services.match_registry import MatchRegistry

ADMIN = "admin-1"
PHOTOGRAPHER = "photog-1"
OTHER_PHOTOGRAPHER = "photog-2"
PERSON_USER = "user-1"
OTHER_PERSON_USER = "user-2"
UNPROFILED_USER = "user-3"

PHOTO = "ph1"
OTHER_PHOTO = "ph2"
PERSON = "p1"
OTHER_PERSON = "p2"


class StubExtractor(DescriptorExtractor):
    """Extractor returning canned detections, or raising a canned error."""

    def __init__(self, detections: Optional[List[FaceDetection]] = None, error: Optional[Exception] = None):
        self.detections = detections or []
        self.error = error
        self.calls = 0
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        self._ready = True

    async def extract(self, image_bytes: bytes) -> List[FaceDetection]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.detections)


def box(x: float = 0, y: float = 0, width: float = 10, height: float = 10) -> BoundingBox:
    return BoundingBox(x=x, y=y, width=width, height=height)


def detection(descriptor: Optional[Sequence[float]], area_side: float = 10, x: float = 0) -> FaceDetection:
    return FaceDetection(
        bounding_box=box(x=x, width=area_side, height=area_side),
        descriptor=descriptor
    )


async def seed(database: Database) -> None:
    """Two photographers with one photo each, two persons, an admin and a person user without a profile."""
    async with database.session() as session:
        session.add_all([
            User(id=ADMIN, role="admin", name="Admin"),
            User(id=PHOTOGRAPHER, role="photographer", name="Photographer"),
            User(id=OTHER_PHOTOGRAPHER, role="photographer", name="Other photographer"),
            User(id=PERSON_USER, role="person", name="Person"),
            User(id=OTHER_PERSON_USER, role="person", name="Other person"),
            User(id=UNPROFILED_USER, role="person", name="No profile"),
        ])
        await session.flush()
        session.add_all([
            Person(id=PERSON, user_id=PERSON_USER, display_name="Person"),
            Person(id=OTHER_PERSON, user_id=OTHER_PERSON_USER, display_name="Other person"),
            Photo(id=PHOTO, photographer_id=PHOTOGRAPHER, storage_key="events/1/ph1.jpg"),
            Photo(id=OTHER_PHOTO, photographer_id=OTHER_PHOTOGRAPHER, storage_key="events/1/ph2.jpg"),
        ])
        await session.commit()


async def enroll_directly(database: Database, person_id: str, descriptor: Sequence[float]) -> None:
    """Store a representative descriptor without going through aggregation."""
    async with database.unit_of_work() as uow:
        person = await uow.persons.get(person_id)
        await uow.persons.save_enrollment(person, descriptor=list(descriptor), samples=[])


async def count_match_rows(database: Database, photo_id: str) -> int:
    """Count the match rows actually stored for a photo."""
    async with database.session() as session:
        result = await session.execute(
            select(func.count()).select_from(FaceMatchRecord).where(FaceMatchRecord.photo_id == photo_id)
        )
        return result.scalar_one()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'facematch.db'}"


@pytest.fixture
async def database(database_url):
    """Provide a seeded, file-backed database."""
    db = Database(database_url)
    await db.create_all()
    await seed(db)
    yield db
    await db.dispose()


@pytest.fixture
def identity_provider(database):
    return DatabaseIdentityProvider(database)


@pytest.fixture
def registry(database, identity_provider):
    return MatchRegistry(database, identity_provider)


@pytest.fixture
def enrollment_service(database, identity_provider):
    return EnrollmentService(database, identity_provider)


@pytest.fixture
def extractor():
    return StubExtractor()


@pytest.fixture
async def container(database, database_url, extractor):
    """Provide a container wired to the seeded test database and the stub extractor."""
    cont = ServiceContainer()
    await cont.initialize(database_url=database_url, extractor=extractor)
    yield cont
    await cont.cleanup()

