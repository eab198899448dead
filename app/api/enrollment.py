"""Enrollment API endpoints."""
from fastapi import APIRouter, Depends

from app.api.models.face import EnrollmentRequest, EnrollmentResponse, ErrorResponse
from app.core.logging import get_logger
from app.infrastructure.dependencies import get_caller_id, get_enrollment_service
from app.services.enrollment import EnrollmentService

logger = get_logger(__name__)
router = APIRouter(
    tags=["enrollment"],
    responses={
        400: {"model": ErrorResponse, "description": "Too few or inconsistent samples"},
        401: {"model": ErrorResponse, "description": "Missing or unknown caller"},
        403: {"model": ErrorResponse, "description": "Caller is not a person"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)


@router.put(
    "/persons/me/enrollment",
    response_model=EnrollmentResponse,
    summary="Enroll the caller's face",
    description="Replaces the caller's enrollment record with one built from the submitted "
                "face samples. At least 3 samples with a descriptor are required; the 5 "
                "largest faces are kept.",
)
async def enroll_me(
    request: EnrollmentRequest,
    caller_id: str = Depends(get_caller_id),
    service: EnrollmentService = Depends(get_enrollment_service)
) -> EnrollmentResponse:
    """Store the caller's enrollment record.

    Args:
        request: Submitted face samples
        caller_id: Authenticated caller
        service: Enrollment service provided by dependency injection

    Returns:
        EnrollmentResponse describing the stored record
    """
    result = await service.enroll_caller(caller_id, request.to_detections())
    return EnrollmentResponse(
        message="Face data saved successfully",
        samples_used=len(result.samples),
        descriptor_dimension=int(result.descriptor.shape[0])
    )
