"""
Classification Service

Owns the hyperparameter k and orchestrates registry lookup, distance
computation, neighbour selection and majority vote for one inference call.
"""

import logging
import numbers
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from knn_service.datasets import Dataset, DatasetRegistry, default_registry
from knn_service.engine import TIE_POLICIES, classify_point, evaluate_dataset
from knn_service.errors import DimensionMismatch, InvalidK
from knn_service.utils import LOGGER_NAME, as_point


logger = logging.getLogger(LOGGER_NAME)

DEFAULT_K = 5


def validate_k(k) -> int:
    """
    Check that k is a positive integer.

    Raises:
        InvalidK: If k is not an int (bools excluded) or k <= 0
    """
    if isinstance(k, bool) or not isinstance(k, numbers.Integral) or k <= 0:
        raise InvalidK(k)
    return int(k)


@dataclass
class Analysis:
    """Outcome of a single classification, with the neighbours that decided it."""

    data_set: str
    test_point: List[float]
    k: int
    predicted_class: int
    neighbors: List[Dict] = field(default_factory=list)
    votes: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "data_set": self.data_set,
            "test_point": self.test_point,
            "k": self.k,
            "class": self.predicted_class,
            "neighbors": self.neighbors,
            "votes": {str(label): count for label, count in self.votes.items()},
        }


class ClassificationService:
    """
    KNN classifier over a fixed registry of reference datasets.

    Args:
        k: Number of nearest neighbours (default: 5)
        registry: Dataset registry (default: the reference datasets)
        tie_policy: Majority vote tie policy, "nearest" or "reject"

    Raises:
        InvalidK: If k is not a positive integer
        ValueError: If the tie policy is unknown
    """

    def __init__(
        self,
        k: int = DEFAULT_K,
        registry: Optional[DatasetRegistry] = None,
        tie_policy: str = "nearest"
    ):
        if tie_policy not in TIE_POLICIES:
            raise ValueError(f"Unknown tie policy '{tie_policy}'. Expected one of {TIE_POLICIES}")

        self._lock = threading.Lock()
        self._k = validate_k(k)
        self.registry = registry if registry is not None else default_registry()
        self.tie_policy = tie_policy

        if self._k % 2 == 0:
            logger.warning(f"k={self._k} is even; majority votes may tie")

    @property
    def k(self) -> int:
        with self._lock:
            return self._k

    def configure(self, new_k: int) -> int:
        """
        Replace the stored k.

        Even values are accepted; ties are then resolved by the tie policy.

        Returns:
            int: The new k

        Raises:
            InvalidK: If new_k is not a positive integer
        """
        new_k = validate_k(new_k)
        if new_k % 2 == 0:
            logger.warning(f"k={new_k} is even; majority votes may tie")

        with self._lock:
            old_k = self._k
            self._k = new_k

        logger.info(f"k reconfigured: {old_k} -> {new_k}")
        return new_k

    def _prepare(self, data_set: str, test_point: Sequence[float]):
        # All preconditions are checked before any distance is computed
        dataset = self.registry.lookup(data_set)

        point = as_point(test_point)
        if point.size != dataset.dimensionality:
            raise DimensionMismatch(dataset.dimensionality, point.size)

        k = self.k
        if k > len(dataset):
            raise InvalidK(k, len(dataset))

        return dataset, point, k

    def explain_analysis(self, data_set: str, test_point: Sequence[float]) -> Analysis:
        """
        Classify a test point and report the neighbours and votes behind the decision.

        Raises:
            UnknownDataset: If the dataset is not registered
            DimensionMismatch: If the test point arity differs from the dataset's
            InvalidK: If k exceeds the dataset size
            AmbiguousClassification: On a tied vote under the "reject" policy
        """
        dataset, point, k = self._prepare(data_set, test_point)
        logger.info(f"Working with {dataset.name} dataset (k={k})")

        result = classify_point(dataset, point, k, tie_policy=self.tie_policy)

        return Analysis(
            data_set=dataset.name,
            test_point=point.tolist(),
            k=k,
            predicted_class=result["predicted_class"],
            neighbors=result["neighbors"],
            votes=result["votes"],
        )

    def run_analysis(self, data_set: str, test_point: Sequence[float]) -> int:
        """
        Classify a test point against a named reference dataset.

        Args:
            data_set: Registered dataset name (e.g. "cancer", "customer")
            test_point: Coordinates with the dataset's dimensionality

        Returns:
            int: Predicted class, 0 or 1
        """
        analysis = self.explain_analysis(data_set, test_point)
        logger.info(f"The test point class is: {analysis.predicted_class}")
        return analysis.predicted_class

    def evaluate(self, data_set: str) -> Dict:
        """
        Classify every point of a dataset against the dataset itself.

        Raises:
            UnknownDataset: If the dataset is not registered
            InvalidK: If k exceeds the dataset size
        """
        dataset: Dataset = self.registry.lookup(data_set)
        k = self.k
        if k > len(dataset):
            raise InvalidK(k, len(dataset))
        return evaluate_dataset(dataset, k, tie_policy=self.tie_policy)
