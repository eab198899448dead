"""Aggregation of several enrollment samples into one representative descriptor."""
from typing import List, Sequence

import numpy as np

from app.core.exceptions import DescriptorDimensionMismatchError, InsufficientSamplesError
from app.domain.entities.face import FaceDetection
from app.domain.value_objects.recognition import EnrollmentAggregate

DEFAULT_MIN_SAMPLES = 3
DEFAULT_MAX_SAMPLES = 5


def select_best_samples(
    samples: Sequence[FaceDetection],
    min_samples: int = DEFAULT_MIN_SAMPLES,
    max_samples: int = DEFAULT_MAX_SAMPLES,
) -> List[FaceDetection]:
    """Pick the samples to average, largest face first.

    Samples without a descriptor are skipped. Larger crops are assumed to carry
    the better descriptor; ties keep submission order.

    Raises:
        InsufficientSamplesError: If fewer than ``min_samples`` samples have a descriptor
    """
    valid = [sample for sample in samples if sample is not None and sample.has_descriptor]
    if len(valid) < min_samples:
        raise InsufficientSamplesError(
            f"At least {min_samples} valid face samples are required, got {len(valid)}",
            details={"required": min_samples, "valid": len(valid), "submitted": len(samples)},
        )

    ranked = sorted(valid, key=lambda sample: sample.bounding_box.area, reverse=True)
    return ranked[:max_samples]


def average_descriptor(samples: Sequence[FaceDetection]) -> np.ndarray:
    """Element-wise mean of the samples' descriptors.

    Raises:
        DescriptorDimensionMismatchError: If the descriptors differ in length
    """
    dimensions = {sample.descriptor.shape[0] for sample in samples}
    if len(dimensions) != 1:
        raise DescriptorDimensionMismatchError(
            "Enrollment samples have descriptors of different lengths",
            details={"dimensions": sorted(dimensions)},
        )
    stacked = np.vstack([sample.descriptor for sample in samples])
    return stacked.mean(axis=0)


def aggregate(
    samples: Sequence[FaceDetection],
    min_samples: int = DEFAULT_MIN_SAMPLES,
    max_samples: int = DEFAULT_MAX_SAMPLES,
) -> EnrollmentAggregate:
    """Compute the representative descriptor for one person's enrollment samples.

    Args:
        samples: Detections of the same person; entries without a descriptor are ignored
        min_samples: Minimum number of usable samples
        max_samples: Maximum number of samples kept, by bounding-box area

    Returns:
        EnrollmentAggregate with the mean descriptor and the retained samples

    Raises:
        InsufficientSamplesError: If fewer than ``min_samples`` samples are usable
        DescriptorDimensionMismatchError: If retained descriptors differ in length
    """
    if min_samples < 1 or max_samples < min_samples:
        raise ValueError("Require 1 <= min_samples <= max_samples")

    retained = select_best_samples(samples, min_samples, max_samples)
    return EnrollmentAggregate(descriptor=average_descriptor(retained), samples=retained)
