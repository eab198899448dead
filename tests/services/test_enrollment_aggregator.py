"""Tests for enrollment sample aggregation."""
import numpy as np
import pytest

from app.core.exceptions import (
    DescriptorDimensionMismatchError,
    InsufficientSamplesError,
    ValidationFailedError,
)
from app.domain.entities.face import BoundingBox, FaceDetection
from app.services.enrollment_aggregator import aggregate, select_best_samples
from tests.conftest import detection


class TestAggregate:
    """Test suite for the representative descriptor computation."""

    def test_three_samples_ranked_by_area(self):
        """Should keep all three samples, largest first, and average them."""
        samples = [
            detection([1, 1], area_side=10),
            detection([3, 3], area_side=20),
            detection([2, 2], area_side=np.sqrt(200)),
        ]

        result = aggregate(samples, min_samples=3)

        assert np.allclose(result.descriptor, [2, 2])
        assert [s.descriptor.tolist() for s in result.samples] == [[3, 3], [2, 2], [1, 1]]

    def test_two_samples_are_insufficient(self):
        """Should reject fewer than the minimum number of samples."""
        with pytest.raises(InsufficientSamplesError) as exc_info:
            aggregate([detection([1, 1]), detection([2, 2])])

        assert exc_info.value.code == "InsufficientSamples"
        assert exc_info.value.details["valid"] == 2
        assert isinstance(exc_info.value, ValidationFailedError)

    def test_samples_without_descriptor_do_not_count(self):
        """Should skip samples lacking a descriptor before checking the minimum."""
        samples = [
            detection([1, 1]),
            detection([2, 2]),
            FaceDetection(bounding_box=BoundingBox(x=0, y=0, width=50, height=50)),
        ]

        with pytest.raises(InsufficientSamplesError):
            aggregate(samples)

    def test_keeps_at_most_five_largest(self):
        """Should retain the five largest faces out of seven."""
        samples = [detection([float(side)] * 4, area_side=side) for side in (5, 70, 10, 60, 20, 50, 30)]

        result = aggregate(samples)

        assert len(result.samples) == 5
        kept = [s.bounding_box.width for s in result.samples]
        assert kept == [70, 60, 50, 30, 20]
        assert np.allclose(result.descriptor, [46.0] * 4)

    def test_equal_areas_keep_submission_order(self):
        """Should break area ties by submission order."""
        samples = [detection([float(i), 0.0], area_side=10, x=i) for i in range(6)]

        result = select_best_samples(samples, 3, 5)

        assert [s.bounding_box.x for s in result] == [0, 1, 2, 3, 4]

    def test_is_deterministic(self):
        """Should produce the same descriptor for the same input."""
        samples = [detection([0.1 * i, 0.2, 0.3], area_side=10 + i) for i in range(4)]

        first = aggregate(samples)
        second = aggregate(samples)

        assert np.array_equal(first.descriptor, second.descriptor)

    def test_dimension_mismatch(self):
        """Should refuse to average descriptors of different lengths."""
        samples = [detection([1, 1]), detection([2, 2]), detection([3, 3, 3])]

        with pytest.raises(DescriptorDimensionMismatchError):
            aggregate(samples)

    def test_invalid_bounds(self):
        """Should reject a maximum below the minimum."""
        with pytest.raises(ValueError):
            aggregate([detection([1, 1])] * 3, min_samples=3, max_samples=2)
