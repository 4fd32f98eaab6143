"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this, never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.environ.get(
            "RECURRING_DETECTOR_CONFIG",
            os.path.join(os.path.dirname(__file__), "config.yaml"),
        )

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def get_recurring_detection_config() -> Dict[str, Any]:
    """Returns the recurring_detection block."""
    return load_config()["recurring_detection"]


def get_frequency_bands() -> list[Dict[str, Any]]:
    """Returns the ordered list of standard frequency bands."""
    return get_recurring_detection_config()["frequency_bands"]


def get_fallback_band() -> Dict[str, Any]:
    """Returns the loose monthly band tried after all standard bands miss."""
    return get_recurring_detection_config()["fallback_band"]


def get_storage_config() -> Dict[str, Any]:
    """Returns the storage block."""
    return load_config()["storage"]


def get_logging_config() -> Dict[str, Any]:
    """Returns logging level and format settings."""
    return load_config()["logging"]


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
