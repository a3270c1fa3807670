"""
offline_contacts.config - Configuration management module

Contains YAML configuration loading, validation, and default settings.
"""

from offline_contacts.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    validate_config,
)
from offline_contacts.config.settings import (
    DEFAULT_GRAPHQL_URL,
    ClientSettings,
    load_settings,
)

__all__ = [
    "ClientSettings",
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_GRAPHQL_URL",
    "load_settings",
    "validate_config",
]
