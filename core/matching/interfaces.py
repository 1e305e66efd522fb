"""
Matching Interfaces Module

This module defines the abstract interface for face descriptor matching.

The browser extracts a fixed-length descriptor from a live camera frame and
sends it to the server. The server only ever sees these vectors, so the
matcher compares two vectors and decides whether they describe the same
face.

Usage:
    from core.matching.interfaces import MatchResult, DescriptorMatcher

    class MyMatcher(DescriptorMatcher):
        def compare(self, candidate, template) -> MatchResult:
            ...
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any


@dataclass
class MatchResult:
    """
    Result of a matching operation.

    Attributes:
        score: Similarity score between 0.0 and 1.0.
               0.0 = completely different (no match)
               1.0 = identical descriptors
        details: Dictionary containing algorithm-specific details.
                 Examples: {"distance": 0.31, "threshold": 0.6}
        is_match: Boolean decision based on threshold comparison.
                  True = the descriptors belong to the same person.
    """

    score: float
    details: Dict[str, Any]
    is_match: bool


class DescriptorMatcher(ABC):
    """
    Abstract base class for face descriptor matching.

    Compares a candidate descriptor (submitted at login) with the template
    descriptor stored at enrollment.

    Note:
        The candidate is computed by the client from its own camera frame.
        A match is therefore advisory: it gives no liveness guarantee
        and cannot detect replay of a previously captured descriptor.
    """

    @abstractmethod
    def compare(
        self, candidate: np.ndarray, template: np.ndarray
    ) -> MatchResult:
        """
        Compare two face descriptors.

        Args:
            candidate: Descriptor from the login attempt. Shape: (D,).
            template: Descriptor stored at enrollment. Shape: (D,).

        Returns:
            MatchResult with similarity score and match decision.

        Raises:
            DescriptorShapeError: If the descriptors cannot be compared
                (different lengths, empty, non-finite values).
        """
        pass
