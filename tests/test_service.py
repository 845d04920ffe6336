"""
Unit tests for the classification service.

Tests the k hyperparameter lifecycle, precondition ordering, determinism and
the end-to-end classification of the reference datasets.
"""

import threading
import unittest

import numpy as np

from knn_service.datasets import Dataset, DatasetRegistry
from knn_service.errors import (
    AmbiguousClassification,
    DimensionMismatch,
    InvalidK,
    UnknownDataset
)
from knn_service.service import ClassificationService, DEFAULT_K


class TestConfigure(unittest.TestCase):
    """Test cases for constructing and reconfiguring the service."""

    def test_default_k(self):
        service = ClassificationService()
        self.assertEqual(service.k, 5)
        self.assertEqual(DEFAULT_K, 5)

    def test_constructor_override(self):
        self.assertEqual(ClassificationService(k=3).k, 3)

    def test_constructor_rejects_invalid_k(self):
        for bad_k in (0, -3, 2.5, True, "3", None):
            with self.assertRaises(InvalidK):
                ClassificationService(k=bad_k)

    def test_constructor_rejects_unknown_tie_policy(self):
        with self.assertRaises(ValueError):
            ClassificationService(tie_policy="random")

    def test_configure(self):
        service = ClassificationService()
        self.assertEqual(service.configure(3), 3)
        self.assertEqual(service.k, 3)

    def test_configure_accepts_numpy_integer(self):
        service = ClassificationService()
        service.configure(np.int64(7))
        self.assertEqual(service.k, 7)
        self.assertIsInstance(service.k, int)

    def test_configure_even_k_logs_warning(self):
        service = ClassificationService()
        with self.assertLogs("knn_service", level="WARNING") as logs:
            service.configure(4)

        self.assertEqual(service.k, 4)
        self.assertTrue(any("even" in line for line in logs.output))

    def test_configure_invalid_k_keeps_previous(self):
        service = ClassificationService(k=3)
        for bad_k in (0, -1, False):
            with self.assertRaises(InvalidK):
                service.configure(bad_k)
        self.assertEqual(service.k, 3)


class TestRunAnalysis(unittest.TestCase):
    """Test cases for run_analysis and friends."""

    def setUp(self):
        self.service = ClassificationService(k=3)

    def test_reference_scenario(self):
        result = self.service.run_analysis("cancer", [13.9, 1.9])

        self.assertEqual(result, 1)
        self.assertIsInstance(result, int)

    def test_deterministic(self):
        for data_set in ("cancer", "customer"):
            results = {self.service.run_analysis(data_set, [13.9, 1.9]) for _ in range(5)}
            self.assertEqual(len(results), 1)
            self.assertIn(results.pop(), (0, 1))

    def test_configured_k_is_used(self):
        """[7.0, 9.1] is class 1 with 3 neighbours and class 0 with 5."""
        service = ClassificationService()
        self.assertEqual(service.run_analysis("cancer", [7.0, 9.1]), 0)

        service.configure(3)
        self.assertEqual(service.run_analysis("cancer", [7.0, 9.1]), 1)

        analysis = service.explain_analysis("cancer", [7.0, 9.1])
        self.assertEqual(analysis.k, 3)
        self.assertEqual(len(analysis.neighbors), 3)

    def test_customer_dataset(self):
        self.service.configure(1)
        self.assertEqual(self.service.run_analysis("customer", [13.9, 5.7]), 1)
        self.assertEqual(self.service.run_analysis("customer", [17.3, 13.6]), 0)

    def test_unknown_dataset(self):
        with self.assertRaises(UnknownDataset):
            self.service.run_analysis("nonexistent", [0, 0])

    def test_dimension_mismatch(self):
        with self.assertRaises(DimensionMismatch):
            self.service.run_analysis("cancer", [1, 2, 3])

    def test_invalid_test_point(self):
        for bad_point in ("12", [[1.0, 2.0]], [1.0, float("inf")], ["a", "b"]):
            with self.assertRaises(ValueError):
                self.service.run_analysis("cancer", bad_point)

    def test_empty_test_point(self):
        with self.assertRaises(DimensionMismatch) as context:
            self.service.run_analysis("cancer", [])

        self.assertEqual(context.exception.expected, 2)
        self.assertEqual(context.exception.actual, 0)

    def test_k_larger_than_dataset(self):
        self.service.configure(11)
        with self.assertRaises(InvalidK) as context:
            self.service.run_analysis("cancer", [13.9, 1.9])

        self.assertEqual(context.exception.dataset_size, 10)

    def test_k_equal_to_dataset_size(self):
        self.service.configure(10)
        self.assertIn(self.service.run_analysis("cancer", [13.9, 1.9]), (0, 1))

    def test_precondition_order(self):
        """Unknown dataset is reported before arity, arity before k."""
        self.service.configure(50)

        with self.assertRaises(UnknownDataset):
            self.service.run_analysis("nonexistent", [1, 2, 3])
        with self.assertRaises(DimensionMismatch):
            self.service.run_analysis("cancer", [1, 2, 3])
        with self.assertRaises(InvalidK):
            self.service.run_analysis("cancer", [1, 2])

    def test_failure_leaves_state_intact(self):
        with self.assertRaises(UnknownDataset):
            self.service.run_analysis("nonexistent", [0, 0])

        self.assertEqual(self.service.k, 3)
        self.assertEqual(self.service.run_analysis("cancer", [13.9, 1.9]), 1)

    def test_tie_nearest_policy(self):
        """With k=2, [7.0, 9.1] sees itself (class 1) then [8.1, 11.1] (class 0)."""
        self.service.configure(2)
        self.assertEqual(self.service.run_analysis("cancer", [7.0, 9.1]), 1)

    def test_tie_reject_policy(self):
        service = ClassificationService(k=2, tie_policy="reject")
        with self.assertRaises(AmbiguousClassification):
            service.run_analysis("cancer", [7.0, 9.1])

    def test_explain_analysis(self):
        analysis = self.service.explain_analysis("cancer", [13.9, 1.9])
        payload = analysis.to_dict()

        self.assertEqual(payload["class"], 1)
        self.assertEqual(payload["k"], 3)
        self.assertEqual(payload["test_point"], [13.9, 1.9])
        self.assertEqual([nb["index"] for nb in payload["neighbors"]], [2, 8, 5])
        self.assertEqual(payload["votes"], {"0": 1, "1": 2})

    def test_evaluate(self):
        result = self.service.evaluate("cancer")

        self.assertEqual(result["k"], 3)
        self.assertEqual(result["predictions"], [0, 1, 1, 1, 1, 1, 1, 0, 1, 0])
        self.assertAlmostEqual(result["accuracy"], 0.8)

    def test_evaluate_errors(self):
        with self.assertRaises(UnknownDataset):
            self.service.evaluate("nonexistent")

        self.service.configure(11)
        with self.assertRaises(InvalidK):
            self.service.evaluate("cancer")

    def test_custom_registry_any_dimensionality(self):
        registry = DatasetRegistry([
            Dataset("cube", [[0, 0, 0], [0, 0, 1], [5, 5, 5], [5, 5, 4], [5, 4, 5]], [0, 0, 1, 1, 1])
        ])
        service = ClassificationService(k=3, registry=registry)

        self.assertEqual(service.run_analysis("cube", [4.5, 4.5, 4.5]), 1)
        self.assertEqual(service.run_analysis("cube", [0.1, 0.0, 0.2]), 0)
        with self.assertRaises(UnknownDataset):
            service.run_analysis("cancer", [1.0, 2.0])


class TestConcurrency(unittest.TestCase):
    """Concurrent configure and run_analysis calls stay consistent."""

    def test_concurrent_calls(self):
        service = ClassificationService(k=3)
        errors = []

        def analyse():
            try:
                for _ in range(50):
                    analysis = service.explain_analysis("cancer", [7.0, 9.1])
                    # k read once per call: neighbour count always matches it
                    if len(analysis.neighbors) != analysis.k:
                        errors.append(analysis.k)
            except Exception as e:
                errors.append(e)

        def reconfigure():
            for i in range(50):
                service.configure(3 if i % 2 else 5)

        threads = [threading.Thread(target=analyse) for _ in range(4)]
        threads.append(threading.Thread(target=reconfigure))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertIn(service.k, (3, 5))


if __name__ == '__main__':
    unittest.main()
