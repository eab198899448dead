"""Tests for gallery matching."""
import numpy as np
import pytest

from app.core.exceptions import DescriptorDimensionMismatchError
from app.domain.value_objects.recognition import GalleryEntry
from app.services.similarity_matcher import euclidean_distance, find_nearest, match
from tests.conftest import box


def gallery(*entries):
    return [GalleryEntry(person_id=person_id, descriptor=descriptor) for person_id, descriptor in entries]


class TestMatch:
    """Test suite for the nearest-neighbour matcher."""

    def test_close_descriptor_matches(self):
        """Should accept a candidate at distance 0.1 with confidence 0.9."""
        result = match(np.array([0.0, 0.1]), gallery(("p1", [0, 0])), threshold=0.6)

        assert result is not None
        assert result.person_id == "p1"
        assert result.distance == pytest.approx(0.1)
        assert result.confidence == pytest.approx(0.9)

    def test_distant_descriptor_is_rejected(self):
        """Should clamp confidence to zero and return no match."""
        query = np.array([10.0, 10.0])
        entries = gallery(("p1", [0, 0]))

        assert match(query, entries, threshold=0.6) is None
        nearest = find_nearest(query, entries)
        assert nearest.distance == pytest.approx(14.142, abs=1e-3)
        assert nearest.confidence == 0.0

    def test_empty_gallery(self):
        """Should return None rather than fail on an empty gallery."""
        assert match(np.array([0.0, 0.0]), []) is None

    def test_picks_nearest_person(self):
        """Should pick the gallery entry with the smallest distance."""
        entries = gallery(("p1", [1, 0]), ("p2", [0, 0.05]), ("p3", [0.3, 0.3]))

        result = match(np.array([0.0, 0.0]), entries)

        assert result.person_id == "p2"
        assert 0.0 <= result.confidence <= 1.0

    def test_ties_go_to_first_entry(self):
        """Should keep the first of equally distant entries."""
        entries = gallery(("p1", [0.1, 0]), ("p2", [0, 0.1]))

        assert match(np.array([0.0, 0.0]), entries).person_id == "p1"

    def test_threshold_is_inclusive(self):
        """Should accept a candidate whose confidence equals the threshold."""
        result = match(np.array([0.0, 0.5]), gallery(("p1", [0, 0])), threshold=0.5)

        assert result is not None

    def test_carries_bounding_box(self):
        """Should copy the query detection's box onto the candidate."""
        face_box = box(x=5, y=6, width=30, height=40)

        result = match(np.array([0.0, 0.0]), gallery(("p1", [0, 0])), bounding_box=face_box)

        assert result.bounding_box == face_box

    def test_dimension_mismatch(self):
        """Should raise when the query and a gallery entry differ in length."""
        with pytest.raises(DescriptorDimensionMismatchError):
            match(np.array([0.0, 0.0, 0.0]), gallery(("p1", [0, 0])))

    def test_euclidean_distance(self):
        assert euclidean_distance(np.array([0.0, 0.0]), np.array([3.0, 4.0])) == pytest.approx(5.0)
