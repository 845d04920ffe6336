"""
Error types for the KNN classification service.

Every error is a ValueError subclass so callers that only care about bad input
can catch ValueError, while the HTTP layer maps each kind to its own status code.
"""

from typing import Dict, List, Optional


class KNNServiceError(ValueError):
    """Base class for all classification failures."""


class UnknownDataset(KNNServiceError):
    """Requested dataset name is not registered."""

    def __init__(self, name: str, known: Optional[List[str]] = None):
        self.name = name
        self.known = list(known or [])
        message = f"Unknown dataset '{name}'"
        if self.known:
            message += f". Data can be one of: {', '.join(self.known)}"
        super().__init__(message)


class DimensionMismatch(KNNServiceError):
    """Point dimensionality does not match the dataset's."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch: expected {expected} features, got {actual}"
        )


class InvalidK(KNNServiceError):
    """k is not a positive integer, or exceeds the size of the dataset."""

    def __init__(self, k, dataset_size: Optional[int] = None):
        self.k = k
        self.dataset_size = dataset_size
        if dataset_size is not None:
            message = f"k={k} exceeds the dataset size ({dataset_size})"
        else:
            message = f"k must be a positive integer, got {k!r}"
        super().__init__(message)


class AmbiguousClassification(KNNServiceError):
    """Majority vote tied and the tie policy refuses to break it."""

    def __init__(self, votes: Dict[int, int]):
        self.votes = dict(votes)
        super().__init__(
            f"Majority vote is tied ({self.votes[0]} vs {self.votes[1]})"
        )
