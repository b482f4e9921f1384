"""Configuration loading utilities."""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

# Repository default, used when no explicit config is given.
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "default.yaml"

# Built-in defaults; a config file only needs to override what differs.
DEFAULTS: Dict[str, Any] = {
    "camera": {
        "serial": "",
        "connect_monocular": True,
        "parameters_file": None,
        "monocular_parameters_file": None,
        "monocular_ueye_parameters_file": None,
        "timeout_ms": 1500,
    },
    "capture": {
        "roi": None,
        "registered": False,
    },
    "calibration": {
        "samples": 10,
        "min_samples": 5,
        "moving": True,
        "target": "",
        "store": True,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "console": True,
    },
}


class ConfigLoader:
    """Load and manage YAML configurations."""

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Default directory for config files.
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_PATH.parent

    def load(
        self,
        config_path: Union[str, Path],
    ) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Relative paths are tried as given first, then below ``config_dir``.

        Args:
            config_path: Path to config file.

        Returns:
            Configuration dictionary.
        """
        config_path = Path(config_path)

        if not config_path.is_absolute() and not config_path.exists():
            config_path = self.config_dir / config_path

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        return self._process_includes(config, config_path.parent)

    def _process_includes(
        self,
        config: Dict,
        base_dir: Path,
    ) -> Dict:
        """
        Process ``!include <file>`` values in config.

        Args:
            config: Configuration dictionary.
            base_dir: Base directory for relative includes.

        Returns:
            Processed configuration.
        """
        result = {}

        for key, value in config.items():
            if isinstance(value, str) and value.startswith("!include "):
                include_path = base_dir / value[9:].strip()
                with open(include_path, "r") as f:
                    result[key] = yaml.safe_load(f)
            elif isinstance(value, dict):
                result[key] = self._process_includes(value, base_dir)
            else:
                result[key] = value

        return result

    def merge(
        self,
        base: Dict[str, Any],
        override: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Deep merge two configurations.

        Args:
            base: Base configuration.
            override: Override configuration.

        Returns:
            Merged configuration. Neither input is modified.
        """
        result = dict(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Load a configuration on top of the built-in defaults.

    Args:
        config_path: Path to config file. Defaults to ``configs/default.yaml``
            when it exists.
        overrides: Optional overrides applied last.

    Returns:
        Configuration dictionary.
    """
    loader = ConfigLoader()
    config = copy.deepcopy(DEFAULTS)

    if config_path is not None:
        config = loader.merge(config, loader.load(config_path))
    elif DEFAULT_CONFIG_PATH.exists():
        config = loader.merge(config, loader.load(DEFAULT_CONFIG_PATH))

    if overrides:
        config = loader.merge(config, overrides)

    return config


def get_nested(
    config: Dict[str, Any],
    key: str,
    default: Any = None,
) -> Any:
    """
    Get nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key (e.g., 'camera.serial').
        default: Default value if key not found.

    Returns:
        Config value or default.
    """
    value = config

    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default

    return value


def set_nested(
    config: Dict[str, Any],
    key: str,
    value: Any,
) -> None:
    """
    Set nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key.
        value: Value to set.
    """
    keys = key.split(".")
    current = config

    for k in keys[:-1]:
        if k not in current or not isinstance(current[k], dict):
            current[k] = {}
        current = current[k]

    current[keys[-1]] = value
