"""
Error types raised by the detection pipeline.

Each error also derives from the builtin it replaces (ValueError/RuntimeError),
so callers that catch the builtin keep working.
"""

from __future__ import annotations


class DetectionError(Exception):
    """Base class for every error raised by drone_detect."""


class ConfigurationError(DetectionError, ValueError):
    """Invalid input size, thresholds, image dimensions or class table."""


class TensorShapeError(DetectionError, ValueError):
    """The model output does not have the expected [1, A, P] layout."""


class NumericError(DetectionError, ValueError):
    """A prediction carries NaN/inf geometry or score values."""


class InferenceUnavailable(DetectionError, RuntimeError):
    """The inference engine could not be loaded or failed to run."""
