"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the offline-contacts configuration
directory (config file, session database, logs) across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".offline-contacts"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "OFFLINE_CONTACTS_CONFIG_DIR"

# Session database file name inside the configuration directory
DEFAULT_SESSION_DB = "session.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. OFFLINE_CONTACTS_CONFIG_DIR environment variable
        3. Default directory (~/.offline-contacts)

    Args:
        config_dir: Optional explicit configuration directory path.

    Returns:
        Resolved Path to the configuration directory
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_session_db(
    session_db: Path | str | None = None, config_dir: Path | str | None = None
) -> str:
    """
    Resolve the session database location.

    ``":memory:"`` is passed through untouched; relative paths are taken
    relative to the configuration directory.
    """
    if session_db == ":memory:":
        return ":memory:"
    base = resolve_config_dir(config_dir)
    if session_db is None:
        return str(base / DEFAULT_SESSION_DB)
    path = Path(session_db).expanduser()
    if not path.is_absolute():
        path = base / path
    return str(path)
