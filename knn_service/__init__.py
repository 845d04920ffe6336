"""
KNN classification service: reference datasets, inference engine and service
"""

from .datasets import Dataset, DatasetRegistry, default_registry
from .errors import (
    KNNServiceError,
    UnknownDataset,
    DimensionMismatch,
    InvalidK,
    AmbiguousClassification
)
from .service import ClassificationService, Analysis, DEFAULT_K

__all__ = [
    'Dataset', 'DatasetRegistry', 'default_registry',
    'KNNServiceError', 'UnknownDataset', 'DimensionMismatch', 'InvalidK', 'AmbiguousClassification',
    'ClassificationService', 'Analysis', 'DEFAULT_K'
]
