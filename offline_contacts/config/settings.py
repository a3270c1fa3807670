"""
Client settings resolved from the YAML configuration and environment.

Configuration file format (config.yaml):

    graphql_url: http://localhost:4000/graphql
    request_timeout: 5
    probe_timeout: 5
    page_size: 10
    cache_duration: 300
    batch_size: 5
    debounce_delay: 0.3
    session_db: session.db
    log_dir: ~/.offline-contacts/logs
    log_retention_count: 10
    verbose: false

Notes:
    - Every key is optional; missing keys fall back to the defaults below
    - OFFLINE_CONTACTS_GRAPHQL_URL overrides graphql_url
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from offline_contacts.api.gateway import DEFAULT_TIMEOUT
from offline_contacts.config.loader import (
    VALID_KEYS,
    ConfigError,
    ConfigLoader,
    validate_config,
)
from offline_contacts.sync.cache import DEFAULT_CACHE_DURATION
from offline_contacts.sync.connectivity import DEFAULT_PROBE_TIMEOUT
from offline_contacts.sync.engine import DEFAULT_BATCH_SIZE
from offline_contacts.sync.store import DEFAULT_PAGE_SIZE
from offline_contacts.utils.debounce import DEFAULT_DEBOUNCE_DELAY
from offline_contacts.utils.paths import resolve_session_db

DEFAULT_GRAPHQL_URL = "http://localhost:4000/graphql"

ENV_GRAPHQL_URL = "OFFLINE_CONTACTS_GRAPHQL_URL"


@dataclass
class ClientSettings:
    """
    Effective client configuration.

    Usage:
        settings = ClientSettings.from_dict(ConfigLoader().load_and_validate())
        gateway = RemoteGateway(settings.graphql_url, settings.request_timeout)
    """

    graphql_url: str = DEFAULT_GRAPHQL_URL
    request_timeout: float = DEFAULT_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    cache_duration: float = DEFAULT_CACHE_DURATION
    batch_size: int = DEFAULT_BATCH_SIZE
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    session_db: str | None = None
    log_dir: str | None = None
    log_retention_count: int = 10
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ClientSettings:
        """
        Create settings from a configuration dictionary.

        Args:
            data: Loaded configuration (validated or not), or None

        Raises:
            ConfigError: If a value is invalid
        """
        data = dict(data or {})
        env_url = os.environ.get(ENV_GRAPHQL_URL)
        if env_url:
            data["graphql_url"] = env_url

        known = {
            key: value
            for key, value in data.items()
            if key in VALID_KEYS and value is not None
        }
        validate_config(known)
        return cls(**known)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def session_db_path(self, config_dir: Path | str | None = None) -> str:
        """Location of the session database for these settings."""
        return resolve_session_db(self.session_db, config_dir)

    def log_path(self) -> Path | None:
        return Path(self.log_dir).expanduser() if self.log_dir else None


def load_settings(
    config_dir: Path | str | None = None, config_file: Path | str | None = None
) -> ClientSettings:
    """
    Load and validate settings from the configuration directory.

    Raises:
        ConfigError: If the configuration file is invalid
    """
    loader = ConfigLoader(config_dir=Path(config_dir) if config_dir else None)
    if config_file:
        config = loader.load_from_file(config_file)
        if config:
            loader.validate(config)
    else:
        config = loader.load_and_validate()
    return ClientSettings.from_dict(config)


__all__ = ["ClientSettings", "ConfigError", "load_settings", "DEFAULT_GRAPHQL_URL"]
