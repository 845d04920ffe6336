"""
State Management for the Client

This module handles configuration for the command-line client: where the
classification server lives and how patiently to talk to it.
"""

import json
import os
from typing import Dict


CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.json")

DEFAULT_CONFIG: Dict = {
    "server_url": "http://localhost:8000",
    "timeout": 10,
    "max_retries": 3
}


def load_config(config_path: str = CONFIG_PATH) -> Dict:
    """
    Load configuration from config.json file.

    Args:
        config_path (str): Path to the configuration file

    Returns:
        dict: Configuration dictionary with client settings

    Raises:
        FileNotFoundError: If config file does not exist
        json.JSONDecodeError: If config file is not valid JSON
        ValueError: If a configuration field is invalid
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = json.load(f)

    merged = dict(DEFAULT_CONFIG)
    merged.update(config)
    _validate_config(merged)

    return merged


def save_config(config: Dict, config_path: str = CONFIG_PATH) -> None:
    """
    Save configuration to config.json file.

    Raises:
        IOError: If the file cannot be written
        ValueError: If a configuration field is invalid
    """
    _validate_config(config)

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def _validate_config(config: Dict) -> None:
    """
    Validate configuration fields.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    server_url = config.get('server_url')
    if not isinstance(server_url, str) or not server_url.strip():
        raise ValueError("Configuration field 'server_url' must be a non-empty string")

    if not server_url.startswith(('http://', 'https://')):
        raise ValueError("Configuration field 'server_url' must start with http:// or https://")

    for field in ('timeout', 'max_retries'):
        value = config.get(field)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"Configuration field '{field}' must be a positive integer")
