"""
Exception types raised by the measurement engine.
"""


class BenchmarkError(Exception):
    """Base class for benchmark engine errors."""


class ResourceError(BenchmarkError, OSError):
    """A backing file or directory could not be created or opened."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path
