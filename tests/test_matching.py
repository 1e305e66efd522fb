"""
Tests for the Matching Module

These tests verify that:
1. distance() computes Euclidean distance and rejects mismatched lengths
2. is_same_face() applies a strict `distance < threshold` decision
3. EuclideanDescriptorMatcher validates dimensions and reports details
4. Malformed descriptors raise DescriptorShapeError rather than "no match"

Run with: pytest tests/test_matching.py -v
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import DescriptorShapeError, ValidationError
from core.matching import (
    DEFAULT_THRESHOLD,
    EuclideanDescriptorMatcher,
    MatchResult,
    as_descriptor,
    distance,
    is_same_face,
)


# ============================================================
# Test Fixtures
# ============================================================

@pytest.fixture
def descriptor():
    """A face-api.js sized descriptor (128 floats)."""
    rng = np.random.default_rng(42)
    return rng.normal(0.0, 0.1, 128)


@pytest.fixture
def matcher():
    return EuclideanDescriptorMatcher({"threshold": 0.6, "descriptor_dim": 128})


# ============================================================
# distance() Tests
# ============================================================

class TestDistance:
    """Tests for the Euclidean distance function."""

    def test_identical_vectors_zero(self, descriptor):
        """Identical descriptors are at distance 0."""
        assert distance(descriptor, descriptor.copy()) == 0.0

    def test_known_value(self):
        """3-4-5 triangle."""
        assert distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)

    def test_symmetric(self, descriptor):
        other = descriptor + 0.05
        assert distance(descriptor, other) == pytest.approx(distance(other, descriptor))

    def test_accepts_plain_lists(self):
        assert distance([1, 2, 3], [1, 2, 3]) == 0.0

    def test_length_mismatch_raises(self):
        """Different lengths are a malformed request, not a non-match."""
        with pytest.raises(DescriptorShapeError):
            distance([0.1, 0.2, 0.3], [0.1, 0.2])

    def test_empty_raises(self):
        with pytest.raises(DescriptorShapeError):
            distance([], [])

    def test_non_finite_raises(self):
        with pytest.raises(DescriptorShapeError):
            distance([0.1, float("nan")], [0.1, 0.2])

    def test_shape_error_is_validation_error(self):
        """DescriptorShapeError surfaces through the ValidationError path."""
        assert issubclass(DescriptorShapeError, ValidationError)


# ============================================================
# is_same_face() Tests
# ============================================================

class TestIsSameFace:
    """Tests for the threshold decision."""

    def test_identical_matches(self, descriptor):
        assert is_same_face(descriptor, descriptor.copy()) is True

    def test_default_threshold(self):
        assert DEFAULT_THRESHOLD == 0.6

    def test_distance_at_threshold_rejected(self):
        """The comparison is strict: distance == threshold is no match."""
        assert is_same_face([0.0], [0.5], threshold=0.5) is False

    def test_distance_above_threshold_rejected(self):
        assert is_same_face([0.0, 0.0], [0.6, 0.8], threshold=0.6) is False

    def test_distance_below_threshold_accepted(self):
        assert is_same_face([0.0, 0.0], [0.3, 0.4], threshold=0.6) is True

    @pytest.mark.parametrize("offset", [0.75, 1.0, 5.0])
    def test_far_descriptors_never_match(self, descriptor, offset):
        """Any pair with distance >= threshold is rejected."""
        shifted = descriptor.copy()
        shifted[0] += offset
        assert distance(descriptor, shifted) >= 0.6
        assert is_same_face(shifted, descriptor, threshold=0.6) is False

    def test_stricter_threshold(self, descriptor):
        """A pair that passes at 0.6 can fail at a stricter 0.5."""
        shifted = descriptor.copy()
        shifted[0] += 0.55
        assert is_same_face(shifted, descriptor, threshold=0.6) is True
        assert is_same_face(shifted, descriptor, threshold=0.5) is False


# ============================================================
# EuclideanDescriptorMatcher Tests
# ============================================================

class TestEuclideanDescriptorMatcher:
    """Tests for the matcher class."""

    def test_same_descriptor_full_score(self, matcher, descriptor):
        result = matcher.compare(descriptor, descriptor.tolist())

        assert isinstance(result, MatchResult)
        assert result.is_match is True
        assert result.score == pytest.approx(1.0)
        assert result.details["distance"] == 0.0
        assert result.details["method"] == "euclidean"

    def test_score_at_threshold_is_half(self, matcher):
        candidate = np.zeros(128)
        template = np.zeros(128)
        template[0] = 0.6

        result = matcher.compare(candidate, template)
        assert result.is_match is False
        assert result.score == pytest.approx(0.5)

    def test_score_never_negative(self, matcher):
        result = matcher.compare(np.zeros(128), np.full(128, 10.0))
        assert result.score == 0.0
        assert result.is_match is False

    def test_wrong_dimension_rejected(self, matcher):
        with pytest.raises(DescriptorShapeError):
            matcher.compare(np.zeros(64), np.zeros(128))

    def test_any_dimension_when_unset(self):
        matcher = EuclideanDescriptorMatcher({"threshold": 0.6})
        result = matcher.compare([0.1, 0.2, 0.3], [0.1, 0.2, 0.3])
        assert result.is_match is True

    def test_default_config(self):
        matcher = EuclideanDescriptorMatcher()
        assert matcher.threshold == DEFAULT_THRESHOLD
        assert matcher.descriptor_dim is None

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            EuclideanDescriptorMatcher({"threshold": 0})


class TestAsDescriptor:
    """Tests for descriptor validation."""

    def test_returns_flat_array(self):
        array = as_descriptor([1, 2, 3])
        assert array.shape == (3,)
        assert array.dtype == np.float64

    def test_rejects_nested(self):
        with pytest.raises(DescriptorShapeError):
            as_descriptor([[0.1, 0.2], [0.3, 0.4]])

    def test_rejects_strings(self):
        with pytest.raises(DescriptorShapeError):
            as_descriptor(["a", "b"])

    def test_expected_dim(self):
        with pytest.raises(DescriptorShapeError):
            as_descriptor([0.1, 0.2], expected_dim=128)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
