"""
Configuration management for SampleZone.

Loads YAML configuration with ${ENV_VAR} interpolation and layers it over
the built-in defaults, so a config file only needs the keys it changes.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from samplezone.utils.errors import ConfigurationError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Keys checked by ConfigManager.validate() when loading a file.
CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "audio.target_sample_rate": {"type": int, "required": True},
    "onset.algorithm": {"type": str, "required": True},
    "onset.threshold": {"type": (int, float), "required": True},
    "onset.offset_ms": {"type": (int, float)},
    "onset.min_spacing_sec": {"type": (int, float)},
    "features.window_ms": {"type": (int, float)},
    "features.adaptive_window": {"type": bool},
    "clustering.method": {"type": str, "required": True},
    "clustering.min_clusters": {"type": int},
    "clustering.max_clusters": {"type": int},
    "clustering.loudness_weight": {"type": (int, float)},
    "grouping.loudness_thresholds": {"type": list},
    "performance.max_workers": {"type": int},
}


class ConfigManager:
    """
    Manages configuration loaded from YAML files.

    Keys are addressed with dot notation ("clustering.max_clusters").
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create a ConfigManager from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or not valid YAML
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, "r") as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            ) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        return cls(_interpolate(config_dict))

    def get(self, key: str, default: Any = None, required: bool = False) -> Any:
        """
        Get a configuration value using dot notation.

        Raises:
            ConfigurationError: If required and the key is not present
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default
        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Return a whole section as a dict (empty if missing)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split(".")
        current = self._config
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value

    def merged_over(self, base: Dict[str, Any]) -> "ConfigManager":
        """Return a new manager with this config layered over ``base``."""
        return ConfigManager(_deep_merge(copy.deepcopy(base), self._config))

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {"clustering.max_clusters": {"type": int, "required": True}}

        Raises:
            ConfigurationError: If a required key is missing or a type is wrong
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            # bool is an int subclass; don't accept True for a numeric key
            if expected_type is not None and (
                not isinstance(value, expected_type)
                or (isinstance(value, bool) and expected_type is not bool)
            ):
                raise ConfigurationError(
                    f"Invalid type for {key}: got {type(value).__name__}",
                    config_key=key
                )


def _interpolate(value: Any) -> Any:
    """Recursively replace ${ENV_VAR} in string values."""
    if isinstance(value, dict):
        return {k: _interpolate(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate(v) for v in value]
    if isinstance(value, str):
        def replace(match: re.Match) -> str:
            env_value = os.environ.get(match.group(1))
            return match.group(0) if env_value is None else env_value
        return _ENV_PATTERN.sub(replace, value)
    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a file, layered over the defaults.

    Args:
        config_path: Optional path to a config file. If None, tries
                     "config/config.yaml" then "config.yaml".

    Returns:
        Dict[str, Any]: Complete configuration dictionary

    Raises:
        ConfigurationError: If an explicit path is missing or invalid
    """
    if config_path is None:
        for path in (Path("config/config.yaml"), Path("config.yaml")):
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        return get_default_config()

    manager = ConfigManager.from_file(Path(config_path)).merged_over(
        get_default_config()
    )
    manager.validate(CONFIG_SCHEMA)
    return manager.to_dict()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "supported_formats": [".wav", ".aif", ".aiff", ".flac", ".mp3", ".ogg"],
            "target_sample_rate": 44100,
        },
        "onset": {
            "algorithm": "multiscale",
            "threshold": 1.5,
            "offset_ms": 0.0,
            "min_spacing_sec": 0.25,
            "multiscale_refractory_ms": 25.0,
        },
        "refiner": {
            "search_back_ms": 25.0,
            "search_forward_ms": 10.0,
            "energy_win_ms": 1.5,
            "hold_ms": 1.0,
            "zc_search_ms": 4.0,
            "baseline_fraction": 0.12,
        },
        "features": {
            "window_ms": 256.0,
            "adaptive_window": False,
            "onset_rms_floor": 0.02,
            "n_mfcc": 13,
            "n_mels": 26,
        },
        "clustering": {
            "method": "hierarchical",
            "min_clusters": 2,
            "max_clusters": 8,
            "distance_metric": "euclidean",
            "loudness_weight": 0.3,
            "dbscan_eps": 0.5,
            "dbscan_min_pts": 2,
            "max_iterations": 200,
            "seed": None,
        },
        "grouping": {
            "sub_cluster_threshold": 3,
            "max_sub_clusters": 3,
            "loudness_thresholds": None,
        },
        "logging": {
            "level": "INFO",
            "format": "json",
        },
        "performance": {
            "max_workers": 4,
        },
    }
