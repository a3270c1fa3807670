"""
Entry point for running offline_contacts as a module.

Usage:
    python -m offline_contacts --help
    python -m offline_contacts list --search ana
    python -m offline_contacts sync
"""

from offline_contacts.cli import cli

if __name__ == "__main__":
    cli()
