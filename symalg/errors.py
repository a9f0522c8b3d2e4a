"""
Exception types raised by symalg.
"""


class SymalgError(Exception):
    """Base class for all symalg errors."""


class InvalidExpressionError(SymalgError, ValueError):
    """Raised when an expression cannot be built from the given input."""


class OperationCancelledError(SymalgError):
    """Raised when a cancellation token is observed during traversal."""
