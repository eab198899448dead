"""API specific face match and enrollment models."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.domain.entities.face import BoundingBox, FaceDetection, Point
from app.domain.entities.match import FaceMatch as DomainFaceMatch
from app.domain.value_objects.recognition import DetectionFailure, PhotoMatchReport

# Constants for validation ranges used in API models
MIN_CONFIDENCE = 0.0
MAX_CONFIDENCE = 1.0


class ErrorResponse(BaseModel):
    """Envelope returned for every failed request."""
    success: bool = Field(False, description="Always false for errors")
    error: str = Field(..., description="Error code, e.g. NotFound or Forbidden")
    message: str = Field(..., description="Human readable error description")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional error context")


class FaceMatch(BaseModel):
    """API model representing a single recorded face match."""
    id: str = Field(..., description="Unique identifier of the match")
    photo_id: str = Field(..., description="Photo the face was found in")
    person_id: str = Field(..., description="Person the face was matched to")
    confidence: float = Field(...,
                              description="Match confidence as a fraction (0.0 to 1.0)",
                              ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE)
    bounding_box: BoundingBox = Field(..., description="Face location in the photo, in pixels")
    approved: bool = Field(..., description="Whether a reviewer approved the match")
    created_at: datetime = Field(..., description="When the match was recorded")
    updated_at: Optional[datetime] = Field(None, description="When the match was last changed")

    @classmethod
    def from_domain(cls, face_match: DomainFaceMatch) -> "FaceMatch":
        """Create an API FaceMatch from the domain entity."""
        return cls(**face_match.model_dump())


class DetectionFailureModel(BaseModel):
    """A detection that could not be matched or recorded."""
    detection_index: int = Field(..., description="Position of the face in the detection output")
    code: str = Field(..., description="Error code of the failure")
    message: str = Field(..., description="Reason the detection failed")

    @classmethod
    def from_domain(cls, failure: DetectionFailure) -> "DetectionFailureModel":
        return cls(**failure.model_dump())


class PhotoMatchResponse(BaseModel):
    """Response model for matching the faces of a photo."""
    success: bool = Field(True)
    message: str = Field(..., description="Summary of the matching run")
    photo_id: str = Field(..., description="Processed photo")
    detections_count: int = Field(..., description="Faces detected in the photo")
    unmatched_count: int = Field(..., description="Faces below the confidence threshold")
    superseded_count: int = Field(0, description="Faces dropped for a better face of the same person")
    matches: List[FaceMatch] = Field(..., description="Matches recorded by this run")
    retained: List[FaceMatch] = Field(default_factory=list, description="Earlier matches kept or updated by this run")
    failures: List[DetectionFailureModel] = Field(..., description="Faces that could not be processed")

    @classmethod
    def from_report(cls, report: PhotoMatchReport) -> "PhotoMatchResponse":
        """Convert the service layer report to the API response model."""
        return cls(
            message=report.message,
            photo_id=report.photo_id,
            detections_count=report.detections_count,
            unmatched_count=report.unmatched_count,
            superseded_count=report.superseded_count,
            matches=[FaceMatch.from_domain(m) for m in report.matches],
            retained=[FaceMatch.from_domain(m) for m in report.retained],
            failures=[DetectionFailureModel.from_domain(f) for f in report.failures]
        )


class FaceMatchListResponse(BaseModel):
    """Response model for listing face matches."""
    success: bool = Field(True)
    matches: List[FaceMatch] = Field(..., description="Matches visible to the caller, newest first")


class FaceMatchResponse(BaseModel):
    """Response model for a single face match."""
    success: bool = Field(True)
    match: FaceMatch


class ApprovalRequest(BaseModel):
    """Request model for approving or rejecting a match."""
    approved: bool = Field(..., description="True to approve, false to reject")


class MessageResponse(BaseModel):
    """Plain success response."""
    success: bool = Field(True)
    message: str


class FaceSample(BaseModel):
    """One enrollment sample as produced by the capture flow."""
    bounding_box: BoundingBox = Field(..., description="Face location in the sample image, in pixels")
    descriptor: Optional[List[float]] = Field(None, description="Face descriptor; samples without one are skipped")
    landmarks: Optional[List[Point]] = Field(None, description="Facial landmarks")

    def to_detection(self) -> FaceDetection:
        """Convert to a FaceDetection, dropping a descriptor that is not usable."""
        try:
            return FaceDetection(
                bounding_box=self.bounding_box,
                descriptor=self.descriptor,
                landmarks=self.landmarks
            )
        except ValueError:
            return FaceDetection(bounding_box=self.bounding_box, landmarks=self.landmarks)


class EnrollmentRequest(BaseModel):
    """Request model for submitting enrollment samples."""
    face_data: List[Optional[FaceSample]] = Field(
        ...,
        description="Face samples of the caller; at least 3 must carry a descriptor"
    )

    def to_detections(self) -> List[FaceDetection]:
        return [sample.to_detection() for sample in self.face_data if sample is not None]


class EnrollmentResponse(BaseModel):
    """Response model for a stored enrollment."""
    success: bool = Field(True)
    message: str
    samples_used: int = Field(..., description="Samples retained for the representative descriptor")
    descriptor_dimension: int = Field(..., description="Length of the representative descriptor")
