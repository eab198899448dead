"""Domain entities package."""
from .face import BoundingBox, FaceDetection, Point
from .identity import CallerScope, Role
from .match import FaceMatch

__all__ = ["BoundingBox", "CallerScope", "FaceDetection", "FaceMatch", "Point", "Role"]
