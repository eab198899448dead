"""
InsightFace-based implementation of the descriptor extractor.

This module turns encoded images into face detections using the InsightFace
model pack. Boxes are reported in pixel coordinates of the decoded image and
descriptors are the L2-normalised ArcFace embeddings, so Euclidean distances
between them fall in [0, 2].

Example:
    ```python
    extractor = InsightFaceDescriptorExtractor()
    await extractor.initialize()

    with open("photo.jpg", "rb") as f:
        detections = await extractor.extract(f.read())
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    pass ``providers=["CUDAExecutionProvider", "CPUExecutionProvider"]``.
"""
import asyncio
import math
from typing import List, Optional, Sequence

import cv2
import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from app.core.config import settings
from app.core.exceptions import (
    ExtractionFailedError,
    ModelLoadError,
    ServiceNotInitializedError,
)
from app.core.logging import get_logger
from app.domain.entities.face import BoundingBox, FaceDetection, Point
from app.domain.interfaces.recognition import DescriptorExtractor

logger = get_logger(__name__)


class InsightFaceDescriptorExtractor(DescriptorExtractor):
    """
    Descriptor extractor backed by InsightFace.

    The model is loaded by ``initialize``, once, and inference runs in a worker
    thread so the event loop stays free while a photo is processed.

    Attributes:
        model: InsightFace FaceAnalysis instance, None until initialized
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        model_root: Optional[str] = None,
        detection_size: Optional[int] = None,
        max_faces: Optional[int] = None,
        max_image_pixels: Optional[int] = None,
        providers: Optional[Sequence[str]] = None,
    ) -> None:
        """Store configuration; the model itself is loaded by ``initialize``."""
        self.model_name = model_name or settings.MODEL_NAME
        self.model_root = model_root or settings.MODEL_CACHE_DIR
        self.detection_size = detection_size or settings.DETECTION_SIZE
        self.max_faces = max_faces or settings.MAX_FACES_PER_IMAGE
        self.max_image_pixels = max_image_pixels or settings.MAX_IMAGE_PIXELS
        self.providers = list(providers or ["CPUExecutionProvider"])
        self.model: Optional[FaceAnalysis] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.model is not None

    async def initialize(self) -> None:
        """Load and prepare the InsightFace model pack.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        async with self._init_lock:
            if self.model is not None:
                return
            logger.info(
                "Loading InsightFace model",
                model_name=self.model_name,
                model_root=self.model_root,
                providers=self.providers
            )
            try:
                self.model = await asyncio.to_thread(self._load_model)
            except Exception as e:
                logger.error("Failed to load InsightFace model", error=str(e), exc_info=True)
                raise ModelLoadError(f"Face recognition model could not be loaded: {e}")
            logger.info("InsightFace model ready", model_name=self.model_name)

    def _load_model(self) -> FaceAnalysis:
        model = FaceAnalysis(
            name=self.model_name,
            root=self.model_root,
            providers=self.providers
        )
        # Detection size affects accuracy significantly
        model.prepare(ctx_id=0, det_size=(self.detection_size, self.detection_size))
        return model

    async def close(self) -> None:
        """Release the model."""
        self.model = None

    def _load_and_validate_image(self, image_bytes: bytes) -> np.ndarray:
        """Decode the image and downscale it if it exceeds the pixel budget."""
        if not image_bytes:
            raise ExtractionFailedError("Image is empty")

        nparr = np.frombuffer(image_bytes, np.uint8)
        img = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        if img is None:
            raise ExtractionFailedError("Failed to decode image")

        height, width = img.shape[:2]
        pixels = width * height

        # Only resize if image is too large
        if pixels > self.max_image_pixels:
            scale = math.sqrt(self.max_image_pixels / pixels)
            new_width = int(width * scale)
            new_height = int(height * scale)

            logger.info(
                "Resizing large image",
                original_size=(width, height),
                new_size=(new_width, new_height)
            )

            img = cv2.resize(
                img,
                (new_width, new_height),
                interpolation=cv2.INTER_AREA
            )

        return img

    def _convert_to_detection(self, face_data: InsightFace, image_shape: tuple) -> Optional[FaceDetection]:
        """
        Convert an InsightFace result into a FaceDetection.

        The box is clipped to the image; faces whose clipped box is empty are dropped.
        """
        height, width = image_shape[:2]
        x1, y1, x2, y2 = (float(v) for v in face_data.bbox)
        x1, x2 = max(0.0, x1), min(float(width), x2)
        y1, y2 = max(0.0, y1), min(float(height), y2)
        if x2 <= x1 or y2 <= y1:
            return None

        landmarks = None
        if getattr(face_data, "kps", None) is not None:
            landmarks = [Point(x=float(p[0]), y=float(p[1])) for p in face_data.kps]

        descriptor = getattr(face_data, "normed_embedding", None)

        return FaceDetection(
            bounding_box=BoundingBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
            descriptor=descriptor,
            landmarks=landmarks,
            detection_score=min(1.0, max(0.0, float(face_data.det_score)))
        )

    def _detect(self, image_bytes: bytes) -> List[FaceDetection]:
        img = self._load_and_validate_image(image_bytes)

        logger.debug(
            "Processing image",
            image_shape=img.shape,
            max_faces=self.max_faces
        )
        faces = self.model.get(img, max_num=self.max_faces)

        detections = []
        for face in faces or []:
            detection = self._convert_to_detection(face, img.shape)
            if detection is not None:
                detections.append(detection)

        logger.debug("Face detection results", faces_found=len(detections))
        return detections

    async def extract(self, image_bytes: bytes) -> List[FaceDetection]:
        """Detect faces and compute descriptors in a worker thread."""
        if not self.is_ready:
            raise ServiceNotInitializedError("Descriptor extractor not initialized")

        try:
            return await asyncio.to_thread(self._detect, image_bytes)
        except ExtractionFailedError:
            raise
        except Exception as e:
            logger.error("Face processing failed", error=str(e), exc_info=True)
            raise ExtractionFailedError("Face detection failed", details={"error": str(e)})
