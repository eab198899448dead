"""Face recognition value objects."""
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.entities.face import BoundingBox, FaceDetection, to_descriptor
from app.domain.entities.match import FaceMatch


class GalleryEntry(BaseModel):
    """Representative descriptor of one enrolled person."""
    person_id: str = Field(..., description="Enrolled person identifier")
    descriptor: np.ndarray = Field(..., description="Representative descriptor")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("descriptor", mode="before")
    @classmethod
    def validate_descriptor(cls, v) -> np.ndarray:
        return to_descriptor(v)


class MatchCandidate(BaseModel):
    """Best gallery entry for one query descriptor.

    ``confidence`` is ``clamp(1 - distance, 0, 1)``: a monotone score, not a
    calibrated probability.
    """
    person_id: str = Field(..., description="Matched person identifier")
    distance: float = Field(..., ge=0.0, description="Euclidean distance to the gallery entry")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Derived match confidence")
    bounding_box: Optional[BoundingBox] = Field(None, description="Box of the query detection")


class EnrollmentAggregate(BaseModel):
    """Representative descriptor plus the samples it was averaged from."""
    descriptor: np.ndarray = Field(..., description="Element-wise mean of the retained samples")
    samples: List[FaceDetection] = Field(..., description="Retained samples, largest face first")

    model_config = ConfigDict(arbitrary_types_allowed=True)


class DetectionFailure(BaseModel):
    """A detection whose match could not be evaluated or recorded."""
    detection_index: int = Field(..., ge=0, description="Position of the detection in the extractor output")
    code: str = Field(..., description="Error code of the failure")
    message: str = Field(..., description="Human readable reason")


class PhotoMatchReport(BaseModel):
    """Outcome of matching every face of one photo.

    ``matches`` holds the rows created by this run; ``retained`` holds earlier
    rows for the same person that were kept or updated instead.
    """
    photo_id: str
    detections_count: int = 0
    unmatched_count: int = 0
    superseded_count: int = 0
    matches: List[FaceMatch] = Field(default_factory=list)
    retained: List[FaceMatch] = Field(default_factory=list)
    failures: List[DetectionFailure] = Field(default_factory=list)

    @property
    def message(self) -> str:
        summary = f"{len(self.matches)} person(s) recognised in photo"
        if self.retained:
            summary += f", {len(self.retained)} already recorded"
        if self.failures:
            summary += f", {len(self.failures)} detection(s) failed"
        return summary
