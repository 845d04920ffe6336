"""
State Management for the Classification Server

This module handles configuration management and the server-owned state:
the ClassificationService instance that holds k between calls, and a bounded
history of recent analyses for the status endpoint.
"""

import json
import logging
import os
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional

from knn_service.datasets import build_registry
from knn_service.engine import TIE_POLICIES
from knn_service.service import ClassificationService, validate_k
from knn_service.utils import LOGGER_NAME


logger = logging.getLogger(LOGGER_NAME)

CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.json")

DEFAULT_CONFIG: Dict = {
    "host": "127.0.0.1",
    "port": 8000,
    "log_level": "INFO",
    "default_k": 5,
    "tie_policy": "nearest",
    "datasets_path": None,
    "history_size": 100
}

# Service instance owned by the server
_service: Optional[ClassificationService] = None
_service_config: Dict = dict(DEFAULT_CONFIG)
_service_lock = Lock()

# Recent analyses, newest last
_analysis_history: List[Dict] = []
_analysis_counts: Dict[str, int] = {'total': 0, 'failed': 0}
_history_lock = Lock()


def _validate_config(config: Dict) -> None:
    """
    Validate configuration values.

    Raises:
        ValueError: If a field has an invalid value
    """
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a JSON object")

    validate_k(config.get("default_k", DEFAULT_CONFIG["default_k"]))

    tie_policy = config.get("tie_policy", DEFAULT_CONFIG["tie_policy"])
    if tie_policy not in TIE_POLICIES:
        raise ValueError(f"tie_policy must be one of {TIE_POLICIES}, got '{tie_policy}'")

    port = config.get("port", DEFAULT_CONFIG["port"])
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError(f"port must be an integer between 1 and 65535, got {port!r}")

    history_size = config.get("history_size", DEFAULT_CONFIG["history_size"])
    if isinstance(history_size, bool) or not isinstance(history_size, int) or history_size < 0:
        raise ValueError(f"history_size must be a non-negative integer, got {history_size!r}")


def load_config(config_path: str = CONFIG_PATH) -> Dict:
    """
    Load configuration from a JSON file, filling in defaults for missing keys.

    Args:
        config_path (str): Path to the configuration file

    Returns:
        dict: Configuration dictionary with server settings

    Raises:
        FileNotFoundError: If config file does not exist
        json.JSONDecodeError: If config file is not valid JSON
        ValueError: If a configuration value is invalid
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = json.load(f)

    _validate_config(config)

    merged = dict(DEFAULT_CONFIG)
    merged.update(config)
    return merged


def save_config(config: Dict, config_path: str = CONFIG_PATH) -> None:
    """
    Save configuration to a JSON file.

    Raises:
        IOError: If the file cannot be written
        ValueError: If a configuration value is invalid
    """
    _validate_config(config)

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def load_config_or_default(config_path: str = CONFIG_PATH) -> Dict:
    """Load configuration, falling back to DEFAULT_CONFIG when the file is absent."""
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        logger.warning(f"Could not load config, using defaults: {e}")
        return dict(DEFAULT_CONFIG)


def create_service(config: Dict) -> ClassificationService:
    """Build a ClassificationService from configuration values."""
    registry = build_registry(config.get("datasets_path"))
    return ClassificationService(
        k=config.get("default_k", DEFAULT_CONFIG["default_k"]),
        registry=registry,
        tie_policy=config.get("tie_policy", DEFAULT_CONFIG["tie_policy"])
    )


def get_service() -> ClassificationService:
    """Return the server's service instance, building it from configuration on first use."""
    global _service, _service_config

    with _service_lock:
        if _service is None:
            _service_config = load_config_or_default()
            _service = create_service(_service_config)
            logger.info(
                f"Classification service ready: k={_service.k}, "
                f"datasets={_service.registry.names()}"
            )
        return _service


def reset_service(config: Optional[Dict] = None) -> ClassificationService:
    """
    Replace the server's service instance.

    Args:
        config: Configuration to build from (default: reload from CONFIG_PATH)
    """
    global _service, _service_config

    if config is not None:
        _validate_config(config)
        merged = dict(DEFAULT_CONFIG)
        merged.update(config)
    else:
        merged = load_config_or_default()

    service = create_service(merged)
    with _service_lock:
        _service = service
        _service_config = merged
    return service


def get_service_config() -> Dict:
    with _service_lock:
        return dict(_service_config)


def record_analysis(data_set: str, test_point: List[float], k: int,
                    predicted_class: Optional[int] = None, error: Optional[str] = None) -> None:
    """
    Append an analysis outcome to the bounded history.

    Args:
        data_set: Dataset name as requested
        test_point: Test point as requested
        k: k in effect for the call
        predicted_class: Result, or None if the call failed
        error: Error message if the call failed
    """
    history_size = get_service_config().get("history_size", DEFAULT_CONFIG["history_size"])

    with _history_lock:
        _analysis_counts['total'] += 1
        if error is not None:
            _analysis_counts['failed'] += 1

        _analysis_history.append({
            'timestamp': datetime.now().isoformat(),
            'data_set': data_set,
            'test_point': list(test_point),
            'k': k,
            'class': predicted_class,
            'error': error
        })

        if len(_analysis_history) > history_size:
            del _analysis_history[:len(_analysis_history) - history_size]


def get_analysis_history(limit: Optional[int] = None) -> List[Dict]:
    """Return recent analyses, newest last."""
    with _history_lock:
        entries = list(_analysis_history)

    if limit is not None:
        entries = entries[-limit:] if limit > 0 else []
    return [dict(entry) for entry in entries]


def get_analysis_stats() -> Dict:
    """
    Get counters over all recorded analyses.

    Returns:
        dict: total, failed and succeeded counts plus per-class counts of the retained history
    """
    with _history_lock:
        per_class = {'0': 0, '1': 0}
        for entry in _analysis_history:
            if entry['class'] is not None:
                per_class[str(entry['class'])] += 1

        return {
            'total_analyses': _analysis_counts['total'],
            'failed_analyses': _analysis_counts['failed'],
            'succeeded_analyses': _analysis_counts['total'] - _analysis_counts['failed'],
            'recent_class_counts': per_class
        }


def clear_analysis_history() -> None:
    """
    Clear the analysis history and counters.

    This is useful for testing or resetting the server state.
    """
    with _history_lock:
        _analysis_history.clear()
        _analysis_counts['total'] = 0
        _analysis_counts['failed'] = 0
