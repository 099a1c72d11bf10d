"""
Exceptions
==========

Errors raised by the simplification engine. Input problems are reported
before any working buffer is created; numerical degeneracies are resolved
internally and never surface here.
"""

from typing import Optional


class MeshSimplifierError(Exception):
    """Base class for all engine errors."""


class MeshValidationError(MeshSimplifierError, ValueError):
    """
    The input mesh is malformed (mismatched buffer lengths, out-of-range
    indices, index arrays that do not describe whole triangles, ...).
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class SimplificationOptionsError(MeshSimplifierError, ValueError):
    """An option of SimplificationOptions has an invalid value."""

    def __init__(self, property_name: str, message: str):
        super().__init__(f"{message}\nProperty name: {property_name}")
        self.property_name = property_name


class SimplificationCancelled(MeshSimplifierError):
    """Raised when the cancellation poll requests an abort between passes."""
