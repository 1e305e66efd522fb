"""
Matching Module for Face Authentication

This package compares face descriptors computed in the browser.

Components:
    - interfaces: MatchResult and the DescriptorMatcher base class
    - descriptor_matcher: Euclidean distance matcher for face-api.js descriptors

Usage:
    from core.matching import EuclideanDescriptorMatcher, is_same_face
"""

from core.matching.interfaces import (
    MatchResult,
    DescriptorMatcher,
)

from core.matching.descriptor_matcher import (
    DEFAULT_THRESHOLD,
    EuclideanDescriptorMatcher,
    as_descriptor,
    distance,
    is_same_face,
)

__all__ = [
    # Data classes
    "MatchResult",
    # Abstract interface
    "DescriptorMatcher",
    # Implementation
    "DEFAULT_THRESHOLD",
    "EuclideanDescriptorMatcher",
    "as_descriptor",
    "distance",
    "is_same_face",
]
