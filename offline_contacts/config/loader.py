"""
Configuration loader module for the offline contact directory.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Basic validation of configuration structure
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from offline_contacts.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Valid configuration keys and their expected types
VALID_KEYS: dict[str, type[Any] | tuple[type[Any], ...]] = {
    # Backend
    "graphql_url": str,
    "request_timeout": (int, float),
    "probe_timeout": (int, float),
    # Paging and caching
    "page_size": int,
    "cache_duration": (int, float),
    # Reconciliation
    "batch_size": int,
    # Query handling
    "debounce_delay": (int, float),
    # Session storage
    "session_db": str,
    # Logging options
    "log_dir": str,
    "log_retention_count": int,
    "verbose": bool,
}

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def validate_config(config: dict[str, Any]) -> None:
    """
    Validate configuration types and value ranges.

    Unknown keys are ignored.

    Raises:
        ConfigError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigError(
            f"Configuration must be a dictionary, got {type(config).__name__}"
        )

    # Null values mean "use the default"
    config = {key: value for key, value in config.items() if value is not None}

    for key, value in config.items():
        if key not in VALID_KEYS:
            continue
        expected_type = VALID_KEYS[key]
        # bool is an int subclass; reject it for numeric keys
        is_bool_for_number = isinstance(value, bool) and expected_type is not bool
        if is_bool_for_number or not isinstance(value, expected_type):
            if isinstance(expected_type, tuple):
                type_name = " or ".join(t.__name__ for t in expected_type)
            else:
                type_name = expected_type.__name__
            raise ConfigError(
                f"Invalid type for '{key}': expected {type_name}, "
                f"got {type(value).__name__}"
            )

    if "graphql_url" in config and not config["graphql_url"].startswith(
        ("http://", "https://")
    ):
        raise ConfigError(
            f"graphql_url must be an http(s) URL, got {config['graphql_url']!r}"
        )

    for key in ("page_size", "batch_size"):
        if key in config and config[key] < 1:
            raise ConfigError(f"{key} must be >= 1, got {config[key]}")

    if config.get("log_retention_count", 0) < 0:
        raise ConfigError(
            f"log_retention_count must be >= 0, got {config['log_retention_count']}"
        )

    for key in ("request_timeout", "probe_timeout"):
        if key in config and config[key] <= 0:
            raise ConfigError(f"{key} must be > 0, got {config[key]}")

    for key in ("cache_duration", "debounce_delay"):
        if key in config and config[key] < 0:
            raise ConfigError(f"{key} must be >= 0, got {config[key]}")


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        config = loader.load_and_validate()
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.offline-contacts/ or $OFFLINE_CONTACTS_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary of configuration values, or empty dict if the file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary of configuration values, or empty dict if the file
            doesn't exist or is empty

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration types and value ranges.

        Raises:
            ConfigError: If configuration is invalid
        """
        validate_config(config)

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
