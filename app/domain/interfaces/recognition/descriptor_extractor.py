"""Descriptor extractor interface."""
from abc import ABC, abstractmethod
from typing import List

from ...entities.face import FaceDetection


class DescriptorExtractor(ABC):
    """Interface for turning an image into face detections with descriptors.

    Implementations load their model in ``initialize`` rather than on import or on
    first use, so the owner decides when the cost is paid.
    """

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether ``initialize`` has completed."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """
        Load the model. Calling it again once ready is a no-op.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def extract(self, image_bytes: bytes) -> List[FaceDetection]:
        """
        Detect faces and compute their descriptors.

        Args:
            image_bytes: Raw encoded image data

        Returns:
            One FaceDetection per face found, each with a bounding box and descriptor.
            An empty list when the image contains no faces.

        Raises:
            ExtractionFailedError: If the image cannot be decoded or processed
            ServiceNotInitializedError: If called before ``initialize``
        """
        pass

    async def close(self) -> None:
        """Release model resources. The default has nothing to release."""
        pass
