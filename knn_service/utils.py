import logging
from typing import Sequence

import numpy as np


LOGGER_NAME = "knn_service"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure logging for the classification service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))

    handler = logging.StreamHandler()
    handler.setLevel(getattr(logging, log_level.upper()))

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    # Avoid duplicate handlers
    if not logger.handlers:
        logger.addHandler(handler)

    return logger


def as_point(values: Sequence[float]) -> np.ndarray:
    """
    Convert a caller-supplied coordinate sequence into a read-only point.

    Args:
        values: Sequence of real numbers

    Returns:
        1-D float64 array

    Raises:
        ValueError: If the values are not a flat sequence of finite numbers
    """
    if isinstance(values, (str, bytes)):
        raise ValueError("Point must be a sequence of numbers, not a string")

    try:
        point = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Point must be a sequence of numbers: {e}") from e

    # An empty point is flat; its arity is checked against the dataset
    if point.ndim != 1:
        raise ValueError(f"Point must be a 1-D sequence, got shape {point.shape}")

    if not np.all(np.isfinite(point)):
        raise ValueError("Point coordinates must be finite numbers")

    point.setflags(write=False)
    return point
