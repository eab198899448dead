"""Core face domain entities."""
from typing import List, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoundingBox(BaseModel):
    """Face bounding box in pixel coordinates."""
    x: float = Field(..., ge=0, description="Left coordinate of the bounding box")
    y: float = Field(..., ge=0, description="Top coordinate of the bounding box")
    width: float = Field(..., gt=0, description="Width of the bounding box")
    height: float = Field(..., gt=0, description="Height of the bounding box")

    @property
    def area(self) -> float:
        """Area of the box in square pixels."""
        return self.width * self.height


class Point(BaseModel):
    """A 2D landmark position."""
    x: float
    y: float


def to_descriptor(value: Union[np.ndarray, list, tuple]) -> np.ndarray:
    """Convert a raw descriptor payload into a 1-D float vector.

    Raises:
        ValueError: If the payload is not a non-empty, finite, one-dimensional vector
    """
    try:
        vector = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Descriptor must be numeric: {e}")
    if vector.ndim != 1:
        raise ValueError("Descriptor must be a one-dimensional vector")
    if vector.size == 0:
        raise ValueError("Descriptor must not be empty")
    if not np.all(np.isfinite(vector)):
        raise ValueError("Descriptor must contain only finite values")
    return vector


class FaceDetection(BaseModel):
    """A face found in an image, with its descriptor when one could be computed."""
    bounding_box: BoundingBox = Field(..., description="Bounding box in pixel space")
    descriptor: Optional[np.ndarray] = Field(None, description="Face descriptor vector")
    landmarks: Optional[List[Point]] = Field(None, description="Facial landmark positions")
    detection_score: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Detector confidence for this face"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("descriptor", mode="before")
    @classmethod
    def validate_descriptor(cls, v: Optional[Union[np.ndarray, list]]) -> Optional[np.ndarray]:
        """Validate and convert descriptor to numpy array if needed."""
        if v is None:
            return None
        return to_descriptor(v)

    @property
    def has_descriptor(self) -> bool:
        """Whether this detection carries a usable descriptor."""
        return self.descriptor is not None and self.descriptor.size > 0
