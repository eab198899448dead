"""SQLAlchemy models for the face matching service."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite drops the offset on the way in, so values are stored as naive UTC and
    re-tagged with UTC when read back.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """Platform user as provisioned by the authentication service."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="One of person, photographer, admin"
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        default=utc_now
    )


class Person(Base):
    """Enrollable person, with the enrollment record stored inline."""

    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    representative_descriptor: Mapped[Optional[List[float]]] = mapped_column(
        JSON(none_as_null=True),
        nullable=True,
        comment="Element-wise mean of source_samples descriptors"
    )
    source_samples: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(
        JSON(none_as_null=True),
        nullable=True,
        comment="Retained enrollment samples: descriptor and bounding box"
    )
    enrollment_updated_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(timezone=True),
        nullable=True
    )

    matches: Mapped[List["FaceMatchRecord"]] = relationship(
        back_populates="person",
        cascade="all, delete-orphan"
    )


class Photo(Base):
    """Event photo as registered by the upload service."""

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    photographer_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    storage_key: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="Location of the image blob in external storage"
    )
    face_match_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Denormalized count of face_matches rows for this photo"
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        default=utc_now
    )

    matches: Mapped[List["FaceMatchRecord"]] = relationship(
        back_populates="photo",
        cascade="all, delete-orphan"
    )


class FaceMatchRecord(Base):
    """Accepted match between a face in a photo and an enrolled person."""

    __tablename__ = "face_matches"
    __table_args__ = (
        Index("idx_face_matches_photo_person", "photo_id", "person_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    photo_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("photos.id", ondelete="CASCADE"),
        nullable=False
    )
    person_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    confidence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Match confidence in [0, 1]"
    )
    bbox_x: Mapped[float] = mapped_column(Float)
    bbox_y: Mapped[float] = mapped_column(Float)
    bbox_width: Mapped[float] = mapped_column(Float)
    bbox_height: Mapped[float] = mapped_column(Float)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        default=utc_now
    )

    photo: Mapped[Photo] = relationship(back_populates="matches")
    person: Mapped[Person] = relationship(back_populates="matches")
