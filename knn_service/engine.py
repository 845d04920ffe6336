"""
KNN Inference Engine

This module implements the instance-based classification steps:
- Euclidean distance between a test point and every reference point
- Ranking of reference points by distance (stable argsort) and selection of the k nearest
- Majority vote over the selected neighbours' class labels

KNN is lazy: there is no fitting step, the full reference dataset is consulted
at inference time.
"""

import logging
from typing import Dict, Sequence

import numpy as np
from sklearn.metrics import accuracy_score, confusion_matrix

from knn_service.datasets import CLASS_LABELS, Dataset
from knn_service.errors import AmbiguousClassification, DimensionMismatch, InvalidK
from knn_service.utils import LOGGER_NAME


logger = logging.getLogger(LOGGER_NAME)

TIE_POLICIES = ("nearest", "reject")


def distance(p: Sequence[float], q: Sequence[float]) -> float:
    """
    Euclidean (L2) distance between two points.

    Args:
        p: First point
        q: Second point

    Returns:
        float: sqrt(sum((p_i - q_i)^2))

    Raises:
        DimensionMismatch: If the points have different lengths
    """
    p = np.asarray(p, dtype=np.float64)
    q = np.asarray(q, dtype=np.float64)
    if p.shape != q.shape:
        raise DimensionMismatch(p.size, q.size)

    sum_sq_diff = np.sum((p - q) ** 2)
    return float(np.sqrt(sum_sq_diff))


def distance_all(test: Sequence[float], dataset: Dataset) -> np.ndarray:
    """
    Distances from a test point to every point of a dataset.

    Args:
        test: Test point with `dataset.dimensionality` coordinates
        dataset: Reference dataset

    Returns:
        np.ndarray: One distance per dataset row, index-aligned with the dataset

    Raises:
        DimensionMismatch: If the test point arity differs from the dataset's
    """
    test = np.asarray(test, dtype=np.float64)
    if test.ndim != 1 or test.size != dataset.dimensionality:
        raise DimensionMismatch(dataset.dimensionality, test.size)

    sq_diff = (dataset.features - test) ** 2
    return np.sqrt(np.sum(sq_diff, axis=1))


def select_k_nearest(distances: Sequence[float], k: int) -> np.ndarray:
    """
    Indices of the k smallest distances, sorted ascending by distance.

    Equal distances keep their original order (stable sort), so the lower
    dataset index wins a tie.

    Args:
        distances: Distance per reference point
        k: Number of neighbours to select

    Returns:
        np.ndarray: k indices into `distances`

    Raises:
        InvalidK: If k <= 0 or k > len(distances)
    """
    distances = np.asarray(distances, dtype=np.float64)
    if k <= 0 or k > len(distances):
        raise InvalidK(k, len(distances) if k > 0 else None)

    order = np.argsort(distances, kind="stable")
    return order[:k]


def count_votes(labels: Sequence[int]) -> Dict[int, int]:
    labels = np.asarray(labels)
    return {label: int(np.sum(labels == label)) for label in CLASS_LABELS}


def majority_class(labels: Sequence[int], tie_policy: str = "nearest") -> int:
    """
    Majority vote over neighbour labels.

    Args:
        labels: Class labels of the selected neighbours, nearest first
        tie_policy: What to do on an equal split:
            - "nearest": return the label of the nearest neighbour (labels[0])
            - "reject": raise AmbiguousClassification

    Returns:
        int: Winning class (0 or 1)

    Raises:
        ValueError: If labels is empty or the tie policy is unknown
        AmbiguousClassification: On a tie under the "reject" policy
    """
    if tie_policy not in TIE_POLICIES:
        raise ValueError(f"Unknown tie policy '{tie_policy}'. Expected one of {TIE_POLICIES}")
    if len(labels) == 0:
        raise ValueError("Cannot take a majority vote over zero labels")

    votes = count_votes(labels)
    if votes[1] > votes[0]:
        return 1
    if votes[0] > votes[1]:
        return 0

    if tie_policy == "reject":
        raise AmbiguousClassification(votes)

    logger.debug(f"Vote tied {votes}; falling back to nearest neighbour")
    return int(labels[0])


def classify_point(
    dataset: Dataset,
    test_point: Sequence[float],
    k: int,
    tie_policy: str = "nearest"
) -> Dict:
    """
    Run the full KNN pipeline for a single test point.

    Args:
        dataset: Reference dataset
        test_point: Point to classify
        k: Number of neighbours
        tie_policy: Majority vote tie policy (see majority_class)

    Returns:
        dict: Result containing:
            - predicted_class: Winning class
            - neighbors: List of {'index', 'distance', 'label'} ordered nearest first
            - votes: Vote count per class
    """
    dists = distance_all(test_point, dataset)
    indices = select_k_nearest(dists, k)
    nearest_labels = dataset.labels[indices]

    predicted = majority_class(nearest_labels, tie_policy=tie_policy)

    neighbors = [
        {
            "index": int(i),
            "distance": float(dists[i]),
            "label": int(dataset.labels[i]),
        }
        for i in indices
    ]

    return {
        "predicted_class": predicted,
        "neighbors": neighbors,
        "votes": count_votes(nearest_labels),
    }


def evaluate_dataset(dataset: Dataset, k: int, tie_policy: str = "nearest") -> Dict:
    """
    Classify every point of a dataset against the dataset itself.

    Each point counts itself as its own nearest neighbour (distance 0), so this
    measures how consistent the labels are with their neighbourhoods rather
    than generalisation.

    Args:
        dataset: Reference dataset
        k: Number of neighbours
        tie_policy: Majority vote tie policy

    Returns:
        dict: k, predictions, accuracy and 2x2 confusion matrix (rows: true, cols: predicted)
    """
    predictions = [
        classify_point(dataset, point, k, tie_policy)["predicted_class"]
        for point in dataset.features
    ]

    accuracy = accuracy_score(dataset.labels, predictions)
    cm = confusion_matrix(dataset.labels, predictions, labels=list(CLASS_LABELS))

    logger.info(f"Evaluated '{dataset.name}' with k={k}: accuracy={accuracy:.4f}")

    return {
        "data_set": dataset.name,
        "k": k,
        "predictions": [int(p) for p in predictions],
        "accuracy": float(accuracy),
        "confusion_matrix": cm.tolist(),
    }
