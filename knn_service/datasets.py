"""
Reference Dataset Registry

This module holds the labeled reference datasets the classifier compares test
points against. Datasets are immutable once built and the registry exposes no
mutation operations: it is populated at construction and read-only afterwards.
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np

from knn_service.errors import UnknownDataset


# Toy data: 10 points x 2 features per dataset, with their target classes
TOY_CANCER_TRAIN = [
    [1.4, 14.2], [7.3, 3.6], [15.8, 2.0], [7.0, 9.1], [13.9, 5.7],
    [16.6, 2.1], [18.1, 4.5], [8.1, 11.1], [11.9, 1.9], [12.8, 15.7],
]
TOY_CANCER_TARGET = [0, 1, 1, 1, 0, 0, 1, 0, 1, 0]

TOY_CUSTOMER_TRAIN = [
    [11.4, 4.2], [17.3, 13.6], [5.8, 22.0], [7.0, 1.1], [13.9, 5.7],
    [16.6, 9.1], [8.1, 1.5], [1.1, 11.1], [2.9, 19.9], [22.8, 15.7],
]
TOY_CUSTOMER_TARGET = [1, 0, 0, 1, 1, 0, 1, 1, 1, 0]

CLASS_LABELS = (0, 1)


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Ordered, labeled collection of reference points.

    Attributes:
        name: Registry key of the dataset
        features: Read-only array of shape (n_samples, n_features)
        labels: Read-only array of shape (n_samples,) with values in {0, 1}
    """

    name: str
    features: np.ndarray
    labels: np.ndarray

    def __post_init__(self):
        features = np.array(self.features, dtype=np.float64)
        labels = np.array(self.labels)

        if features.ndim != 2 or features.shape[0] == 0 or features.shape[1] == 0:
            raise ValueError(
                f"Dataset '{self.name}' needs a non-empty 2-D feature table, got shape {features.shape}"
            )
        if labels.ndim != 1 or len(labels) != len(features):
            raise ValueError(
                f"Dataset '{self.name}' has {len(features)} points but {labels.size} labels"
            )
        if not np.all(np.isfinite(features)):
            raise ValueError(f"Dataset '{self.name}' contains non-finite feature values")
        if not np.all(np.isin(labels, CLASS_LABELS)):
            raise ValueError(f"Dataset '{self.name}' labels must be 0 or 1")

        labels = labels.astype(np.int64)
        features.setflags(write=False)
        labels.setflags(write=False)
        object.__setattr__(self, "features", features)
        object.__setattr__(self, "labels", labels)

    @property
    def dimensionality(self) -> int:
        return int(self.features.shape[1])

    def __len__(self) -> int:
        return int(self.features.shape[0])

    def class_counts(self) -> Dict[int, int]:
        return {label: int(np.sum(self.labels == label)) for label in CLASS_LABELS}


class DatasetRegistry:
    """Fixed mapping from dataset name to Dataset."""

    def __init__(self, datasets: Iterable[Dataset]):
        self._datasets: Dict[str, Dataset] = {}
        for dataset in datasets:
            if dataset.name in self._datasets:
                raise ValueError(f"Duplicate dataset name: {dataset.name}")
            self._datasets[dataset.name] = dataset

    def lookup(self, name: str) -> Dataset:
        """
        Resolve a dataset by name.

        Raises:
            UnknownDataset: If no dataset is registered under `name`
        """
        try:
            return self._datasets[name]
        except (KeyError, TypeError):
            raise UnknownDataset(name, self.names()) from None

    def names(self) -> List[str]:
        return list(self._datasets.keys())

    def describe(self) -> List[Dict]:
        """Summaries of every registered dataset, suitable for JSON responses."""
        return [
            {
                "name": dataset.name,
                "n_samples": len(dataset),
                "dimensionality": dataset.dimensionality,
                "class_counts": {str(k): v for k, v in dataset.class_counts().items()},
            }
            for dataset in self._datasets.values()
        ]

    def __contains__(self, name) -> bool:
        return name in self._datasets

    def __len__(self) -> int:
        return len(self._datasets)


def reference_datasets() -> List[Dataset]:
    return [
        Dataset("cancer", TOY_CANCER_TRAIN, TOY_CANCER_TARGET),
        Dataset("customer", TOY_CUSTOMER_TRAIN, TOY_CUSTOMER_TARGET),
    ]


def default_registry() -> DatasetRegistry:
    """Registry holding the reference `cancer` and `customer` datasets."""
    return DatasetRegistry(reference_datasets())


def load_datasets_file(path: str) -> Dict[str, Dataset]:
    """
    Load additional datasets from a JSON file.

    Expected layout:
        {"name": {"features": [[x1, x2, ...], ...], "labels": [0, 1, ...]}, ...}

    Args:
        path: Path to the JSON file

    Returns:
        dict: Mapping of dataset name to Dataset

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
        ValueError: If an entry is malformed
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Datasets file not found: {path}")

    with open(path, 'r') as f:
        payload = json.load(f)

    if not isinstance(payload, dict):
        raise ValueError("Datasets file must contain a JSON object keyed by dataset name")

    datasets = {}
    for name, entry in payload.items():
        if not isinstance(entry, dict) or "features" not in entry or "labels" not in entry:
            raise ValueError(f"Dataset '{name}' must define 'features' and 'labels'")
        datasets[name] = Dataset(name, entry["features"], entry["labels"])

    return datasets


def build_registry(extra_path: Optional[str] = None) -> DatasetRegistry:
    """
    Build the registry from the reference datasets plus an optional JSON file.

    Raises:
        ValueError: If a file entry reuses a reference dataset name
    """
    datasets = reference_datasets()
    if extra_path:
        reserved = {d.name for d in datasets}
        for name, dataset in load_datasets_file(extra_path).items():
            if name in reserved:
                raise ValueError(f"Dataset '{name}' would shadow a reference dataset")
            datasets.append(dataset)
    return DatasetRegistry(datasets)
