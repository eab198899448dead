"""Persisted face match entity."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.domain.entities.face import BoundingBox


class FaceMatch(BaseModel):
    """An accepted match between a face in a photo and an enrolled person.

    ``approved`` is the human review state; it is independent of ``confidence``.
    """
    id: str = Field(..., description="Unique identifier of the match")
    photo_id: str = Field(..., description="Photo the face was found in")
    person_id: str = Field(..., description="Person the face was matched to")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Match confidence as a fraction")
    bounding_box: BoundingBox = Field(..., description="Box of the detection that produced the match")
    approved: bool = Field(False, description="Whether a reviewer approved the match")
    created_at: datetime = Field(..., description="When the match was recorded")
    updated_at: Optional[datetime] = Field(None, description="When the match was last changed")
