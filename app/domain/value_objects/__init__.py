"""Value objects package."""
from .policies import DuplicateMatchPolicy, RecordFailurePolicy
from .recognition import (
    DetectionFailure,
    EnrollmentAggregate,
    GalleryEntry,
    MatchCandidate,
    PhotoMatchReport,
)

__all__ = [
    "DetectionFailure",
    "DuplicateMatchPolicy",
    "EnrollmentAggregate",
    "GalleryEntry",
    "MatchCandidate",
    "PhotoMatchReport",
    "RecordFailurePolicy",
]
