"""
offline_contacts.utils - Utility module

Common utilities including path resolution, debouncing and logging configuration.
"""

from offline_contacts.utils.debounce import Debouncer
from offline_contacts.utils.paths import (
    DEFAULT_CONFIG_DIR,
    resolve_config_dir,
    resolve_session_db,
)

__all__ = ["Debouncer", "resolve_config_dir", "resolve_session_db", "DEFAULT_CONFIG_DIR"]
