"""API v1 router initialization."""
from fastapi import APIRouter

from .enrollment import router as enrollment_router
from .face_matches import router as face_matches_router

# Create v1 router
router = APIRouter()

# Include face match and enrollment endpoints
router.include_router(face_matches_router)
router.include_router(enrollment_router)
