"""CLI package for offline_contacts."""

from offline_contacts.cli.formatters import (
    print_contacts,
    print_pending,
    print_record,
    print_sync_result,
)
from offline_contacts.cli.main import cli, get_config_dir, get_store
from offline_contacts.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "cli",
    "get_config_dir",
    "get_store",
    "print_contacts",
    "print_pending",
    "print_record",
    "print_sync_result",
]
