"""Face match API endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile

from app.api.models.face import (
    ApprovalRequest,
    ErrorResponse,
    FaceMatch,
    FaceMatchListResponse,
    FaceMatchResponse,
    MessageResponse,
    PhotoMatchResponse,
)
from app.core.logging import get_logger
from app.infrastructure.dependencies import (
    get_caller_id,
    get_match_registry,
    get_photo_matching_service,
)
from app.services.match_registry import MatchRegistry
from app.services.photo_matching import PhotoMatchingService

logger = get_logger(__name__)
router = APIRouter(
    tags=["face-matches"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        401: {"model": ErrorResponse, "description": "Missing or unknown caller"},
        403: {"model": ErrorResponse, "description": "Outside the caller's scope"},
        404: {"model": ErrorResponse, "description": "Resource not found"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)


@router.post(
    "/photos/{photo_id}/face-matches",
    response_model=PhotoMatchResponse,
    summary="Match the faces in a photo",
    description="Detects every face in the uploaded image, matches each one against the "
                "enrolled persons and records the matches for the photo.",
    responses={
        200: {
            "description": "Photo processed",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "message": "1 person(s) recognised in photo",
                        "photo_id": "photo-1",
                        "detections_count": 2,
                        "unmatched_count": 1,
                        "superseded_count": 0,
                        "matches": [
                            {
                                "id": "550e8400-e29b-41d4-a716-446655440000",
                                "photo_id": "photo-1",
                                "person_id": "person-7",
                                "confidence": 0.83,
                                "bounding_box": {"x": 100, "y": 200, "width": 150, "height": 150},
                                "approved": False,
                                "created_at": "2024-05-01T12:00:00Z",
                                "updated_at": None
                            }
                        ],
                        "failures": []
                    }
                }
            },
        },
        422: {"model": ErrorResponse, "description": "Image could not be processed"},
    },
)
async def match_photo(
    photo_id: str = Path(..., description="Registered photo the image belongs to"),
    image: UploadFile = File(..., description="Encoded photo (JPEG or PNG)"),
    caller_id: str = Depends(get_caller_id),
    service: PhotoMatchingService = Depends(get_photo_matching_service)
) -> PhotoMatchResponse:
    """Run face matching for a photo.

    Args:
        photo_id: Photo being processed
        image: Uploaded image file
        caller_id: Authenticated caller
        service: Photo matching service provided by dependency injection

    Returns:
        PhotoMatchResponse with recorded matches and per-face failures
    """
    image_bytes = await image.read()
    logger.info(
        "Received photo for matching",
        photo_id=photo_id,
        filename=image.filename,
        size=len(image_bytes)
    )
    report = await service.process_photo(photo_id, image_bytes, caller_id=caller_id)
    return PhotoMatchResponse.from_report(report)


@router.get(
    "/face-matches",
    response_model=FaceMatchListResponse,
    summary="List face matches",
    description="Lists the matches visible to the caller, newest first. Photographers see "
                "matches on their own photos, persons see their own matches.",
)
async def list_face_matches(
    photo_id: Optional[str] = Query(None, description="Only matches on this photo"),
    person_id: Optional[str] = Query(None, description="Only matches of this person"),
    approved: Optional[bool] = Query(None, description="Only matches with this approval state"),
    caller_id: str = Depends(get_caller_id),
    registry: MatchRegistry = Depends(get_match_registry)
) -> FaceMatchListResponse:
    matches = await registry.list_matches(
        caller_id,
        photo_id=photo_id,
        person_id=person_id,
        approved=approved
    )
    return FaceMatchListResponse(matches=[FaceMatch.from_domain(m) for m in matches])


@router.get(
    "/face-matches/{match_id}",
    response_model=FaceMatchResponse,
    summary="Get a face match",
)
async def get_face_match(
    match_id: str = Path(..., description="Face match id"),
    caller_id: str = Depends(get_caller_id),
    registry: MatchRegistry = Depends(get_match_registry)
) -> FaceMatchResponse:
    face_match = await registry.get_match(match_id, caller_id=caller_id)
    return FaceMatchResponse(match=FaceMatch.from_domain(face_match))


@router.patch(
    "/face-matches/{match_id}",
    response_model=FaceMatchResponse,
    summary="Approve or reject a face match",
    description="Sets the approval state of a match. Repeating the same request has no further effect.",
)
async def set_face_match_approval(
    request: ApprovalRequest,
    match_id: str = Path(..., description="Face match id"),
    caller_id: str = Depends(get_caller_id),
    registry: MatchRegistry = Depends(get_match_registry)
) -> FaceMatchResponse:
    face_match = await registry.set_approval(match_id, request.approved, caller_id=caller_id)
    return FaceMatchResponse(match=FaceMatch.from_domain(face_match))


@router.delete(
    "/face-matches/{match_id}",
    response_model=MessageResponse,
    summary="Delete a face match",
)
async def delete_face_match(
    match_id: str = Path(..., description="Face match id"),
    caller_id: str = Depends(get_caller_id),
    registry: MatchRegistry = Depends(get_match_registry)
) -> MessageResponse:
    await registry.delete_match(match_id, caller_id=caller_id)
    return MessageResponse(message="Face match deleted")
