"""
Tests for server configuration and server-side state.
"""

import json
import logging
import os
import shutil
import tempfile

import pytest

from knn_service.state import (
    DEFAULT_CONFIG,
    load_config,
    save_config,
    load_config_or_default,
    create_service,
    get_service,
    reset_service,
    record_analysis,
    get_analysis_history,
    get_analysis_stats,
    clear_analysis_history
)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    if os.path.exists(temp_dir):
        shutil.rmtree(temp_dir)


@pytest.fixture(autouse=True)
def fresh_state():
    reset_service({"default_k": 3})
    clear_analysis_history()
    yield
    clear_analysis_history()


def test_load_config_fills_defaults(temp_dir):
    path = os.path.join(temp_dir, "config.json")
    with open(path, 'w') as f:
        json.dump({"default_k": 7, "port": 9000}, f)

    config = load_config(path)

    assert config["default_k"] == 7
    assert config["port"] == 9000
    assert config["tie_policy"] == DEFAULT_CONFIG["tie_policy"]
    assert config["history_size"] == DEFAULT_CONFIG["history_size"]


def test_load_config_missing(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_config(os.path.join(temp_dir, "missing.json"))

    assert load_config_or_default(os.path.join(temp_dir, "missing.json")) == DEFAULT_CONFIG


@pytest.mark.parametrize("bad_config", [
    {"default_k": 0},
    {"default_k": "5"},
    {"tie_policy": "coin_flip"},
    {"port": 70000},
    {"history_size": -1},
])
def test_invalid_config_rejected(temp_dir, bad_config):
    path = os.path.join(temp_dir, "config.json")
    with open(path, 'w') as f:
        json.dump(bad_config, f)

    with pytest.raises(ValueError):
        load_config(path)


def test_save_config_writes_json(temp_dir):
    path = os.path.join(temp_dir, "nested", "config.json")
    config = dict(DEFAULT_CONFIG, default_k=9)

    save_config(config, path)

    with open(path) as f:
        assert json.load(f)["default_k"] == 9


def test_packaged_config_is_valid():
    config = load_config()
    assert config["default_k"] == 5


def test_create_service_from_config(temp_dir):
    datasets_path = os.path.join(temp_dir, "datasets.json")
    with open(datasets_path, 'w') as f:
        json.dump({"line": {"features": [[0.0], [1.0], [10.0]], "labels": [0, 0, 1]}}, f)

    service = create_service(dict(DEFAULT_CONFIG, default_k=1, tie_policy="reject",
                                  datasets_path=datasets_path))

    assert service.k == 1
    assert service.tie_policy == "reject"
    assert service.registry.names() == ["cancer", "customer", "line"]
    assert service.run_analysis("line", [9.0]) == 1


def test_reset_service_replaces_instance():
    first = get_service()
    first.configure(7)

    second = reset_service({"default_k": 3})

    assert second is get_service()
    assert second is not first
    assert second.k == 3


def test_history_is_bounded():
    reset_service({"default_k": 3, "history_size": 2})

    record_analysis("cancer", [1.0, 2.0], 3, predicted_class=1)
    record_analysis("cancer", [3.0, 4.0], 3, predicted_class=0)
    record_analysis("nonexistent", [0.0, 0.0], 3, error="Unknown dataset 'nonexistent'")

    history = get_analysis_history()
    assert len(history) == 2
    assert history[0]["test_point"] == [3.0, 4.0]
    assert history[1]["error"] is not None
    assert get_analysis_history(limit=1) == history[-1:]
    assert get_analysis_history(limit=0) == []

    stats = get_analysis_stats()
    assert stats["total_analyses"] == 3
    assert stats["failed_analyses"] == 1
    assert stats["succeeded_analyses"] == 2
    assert stats["recent_class_counts"] == {"0": 1, "1": 0}


def test_setup_logging_does_not_duplicate_handlers():
    from knn_service.utils import setup_logging

    first = setup_logging("DEBUG")
    second = setup_logging("INFO")

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.INFO
