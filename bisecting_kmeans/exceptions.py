"""Errors raised while serving a bisecting k-means model."""


class BisectingKMeansError(ValueError):
    """Base class for all errors raised by this package."""


class DimensionMismatch(BisectingKMeansError):
    """Raised when two vectors compared by a metric differ in length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}."
        )
        self.expected = expected
        self.actual = actual


class EmptyCenterSet(BisectingKMeansError):
    """Raised when a nearest-center search is attempted with no centers."""

    def __init__(self, message: str = "Cannot search an empty set of centers.") -> None:
        super().__init__(message)
