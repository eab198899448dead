"""Custom exceptions for the face matching service."""
from typing import Optional


class FaceMatchingError(Exception):
    """Base exception for face matching operations.

    Every subclass carries the error ``code`` and HTTP ``status_code`` used when the
    error is rendered as an API error envelope.
    """

    code = "InternalFailure"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face matching error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationFailedError(FaceMatchingError):
    """Raised when input is malformed or incomplete."""
    code = "ValidationFailed"
    status_code = 400


class InsufficientSamplesError(ValidationFailedError):
    """Raised when an enrollment has fewer valid samples than required."""
    code = "InsufficientSamples"


class DescriptorDimensionMismatchError(ValidationFailedError):
    """Raised when two descriptors that must be compared differ in length."""
    code = "DescriptorDimensionMismatch"


class UnauthorizedError(FaceMatchingError):
    """Raised when the caller is not authenticated or unknown."""
    code = "Unauthorized"
    status_code = 401


class ForbiddenError(FaceMatchingError):
    """Raised when the caller is authenticated but outside the allowed scope."""
    code = "Forbidden"
    status_code = 403


class NotFoundError(FaceMatchingError):
    """Raised when a referenced photo, person or match does not exist."""
    code = "NotFound"
    status_code = 404


class ExtractionFailedError(FaceMatchingError):
    """Raised when the descriptor extractor cannot process an image."""
    code = "ExtractionFailed"
    status_code = 422


class InternalFailureError(FaceMatchingError):
    """Raised on storage or network faults."""
    pass


class ServiceNotInitializedError(InternalFailureError):
    """Raised when a service is used before the container initialized it."""
    status_code = 503


class ModelLoadError(ServiceNotInitializedError):
    """Raised when the face recognition model fails to load."""
    pass
