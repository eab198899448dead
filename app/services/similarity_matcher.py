"""Nearest-neighbour matching of a face descriptor against the enrollment gallery.

The gallery is scanned linearly: one row per enrolled person, so it stays small
for a single event. Confidence is ``clamp(1 - distance, 0, 1)``, which ranks
candidates correctly but is not calibrated against the extraction model's real
distance distribution; the threshold has to be tuned per model.
"""
from typing import Optional, Sequence

import numpy as np

from app.core.exceptions import DescriptorDimensionMismatchError
from app.domain.entities.face import BoundingBox
from app.domain.value_objects.recognition import GalleryEntry, MatchCandidate

DEFAULT_THRESHOLD = 0.6


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two equal-length descriptors.

    Raises:
        DescriptorDimensionMismatchError: If the lengths differ
    """
    if a.shape != b.shape:
        raise DescriptorDimensionMismatchError(
            "Descriptors must have the same length",
            details={"query_dimension": int(a.shape[0]), "gallery_dimension": int(b.shape[0])},
        )
    return float(np.linalg.norm(a - b))


def distance_to_confidence(distance: float) -> float:
    return float(min(1.0, max(0.0, 1.0 - distance)))


def find_nearest(
    query: np.ndarray,
    gallery: Sequence[GalleryEntry],
) -> Optional[MatchCandidate]:
    """Closest gallery entry regardless of threshold; ties go to the earliest entry."""
    best_entry: Optional[GalleryEntry] = None
    best_distance = float("inf")

    for entry in gallery:
        distance = euclidean_distance(query, entry.descriptor)
        if distance < best_distance:
            best_distance = distance
            best_entry = entry

    if best_entry is None:
        return None

    return MatchCandidate(
        person_id=best_entry.person_id,
        distance=best_distance,
        confidence=distance_to_confidence(best_distance),
    )


def match(
    query: np.ndarray,
    gallery: Sequence[GalleryEntry],
    threshold: float = DEFAULT_THRESHOLD,
    bounding_box: Optional[BoundingBox] = None,
) -> Optional[MatchCandidate]:
    """Find the enrolled person whose descriptor is closest to ``query``.

    Args:
        query: Descriptor of the face to identify
        gallery: Enrolled persons' representative descriptors
        threshold: Minimum confidence (0-1) for accepting the best candidate
        bounding_box: Box of the query detection, carried onto the candidate

    Returns:
        The best MatchCandidate if its confidence reaches ``threshold``, else None.
        An empty gallery yields None.

    Raises:
        DescriptorDimensionMismatchError: If a gallery descriptor differs in length from ``query``
    """
    candidate = find_nearest(query, gallery)
    if candidate is None or candidate.confidence < threshold:
        return None
    if bounding_box is not None:
        candidate = candidate.model_copy(update={"bounding_box": bounding_box})
    return candidate
