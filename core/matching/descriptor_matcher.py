"""
Descriptor Matcher: Compare face-api.js descriptors via Euclidean distance.

The browser model produces a 128-dim descriptor per face. Two descriptors
belong to the same person when their Euclidean distance is below a
threshold. Lower thresholds reduce false accepts at the cost of more false
rejects; 0.6 is the conventional value for this model, 0.5 is stricter.

A length mismatch is a malformed request, not a failed match, and is
reported with DescriptorShapeError.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np

from core.errors import DescriptorShapeError
from core.matching.interfaces import DescriptorMatcher, MatchResult

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6

Descriptor = Union[Sequence[float], np.ndarray]


def as_descriptor(values: Descriptor, expected_dim: Optional[int] = None) -> np.ndarray:
    """
    Convert a descriptor to a flat float64 array and validate it.

    Args:
        values: Sequence of numbers.
        expected_dim: Required length, or None to accept any non-empty length.

    Returns:
        (D,) float64 array.

    Raises:
        DescriptorShapeError: If the descriptor is empty, not numeric,
            non-finite or of the wrong length.
    """
    try:
        array = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        raise DescriptorShapeError("Face descriptor must be a list of numbers")

    if array.ndim != 1 or array.shape[0] == 0:
        raise DescriptorShapeError("Face descriptor must be a non-empty flat list")

    if not np.all(np.isfinite(array)):
        raise DescriptorShapeError("Face descriptor contains non-finite values")

    if expected_dim is not None and array.shape[0] != expected_dim:
        raise DescriptorShapeError(
            f"Face descriptor must have {expected_dim} values, got {array.shape[0]}"
        )

    return array


def distance(a: Descriptor, b: Descriptor) -> float:
    """
    Euclidean distance between two equal-length descriptors.

    Raises:
        DescriptorShapeError: If the lengths differ or either vector is invalid.
    """
    a = as_descriptor(a)
    b = as_descriptor(b)

    if a.shape[0] != b.shape[0]:
        raise DescriptorShapeError(
            f"Descriptor length mismatch: {a.shape[0]} != {b.shape[0]}"
        )

    return float(np.linalg.norm(a - b))


def is_same_face(
    candidate: Descriptor,
    reference: Descriptor,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """Return True when the two descriptors are closer than `threshold`."""
    return distance(candidate, reference) < threshold


class EuclideanDescriptorMatcher(DescriptorMatcher):
    """
    Compare face descriptors by Euclidean distance.

    The score maps distance d to max(0, 1 - d / (2 * threshold)), so a
    distance equal to the threshold scores 0.5 and identical vectors
    score 1.0. The decision itself is always `d < threshold`.

    Args:
        config: Dictionary with optional keys:
            - threshold: Match cut-off distance (default 0.6)
            - descriptor_dim: Expected descriptor length (default None = any)
    """

    def __init__(self, config: dict = None):
        if config is None:
            config = {}
        self.threshold = float(config.get("threshold", DEFAULT_THRESHOLD))
        self.descriptor_dim = config.get("descriptor_dim")

        if self.threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self.threshold}")

    def validate(self, values: Descriptor) -> np.ndarray:
        """Validate a descriptor against the configured dimension."""
        return as_descriptor(values, self.descriptor_dim)

    def compare(self, candidate: Descriptor, template: Descriptor) -> MatchResult:
        """
        Compare a candidate descriptor against an enrolled template.

        Args:
            candidate: Descriptor submitted at login.
            template: Descriptor stored at enrollment.

        Returns:
            MatchResult with the distance in its details.
        """
        d = distance(self.validate(candidate), as_descriptor(template))
        is_match = d < self.threshold
        score = max(0.0, 1.0 - d / (2.0 * self.threshold))

        logger.debug(f"Descriptor distance={d:.4f} threshold={self.threshold} match={is_match}")

        return MatchResult(
            score=score,
            details={
                "method": "euclidean",
                "distance": d,
                "threshold": self.threshold,
                "descriptor_dim": len(template),
            },
            is_match=is_match,
        )
