"""
offline_contacts.storage - Session-scoped local persistence
"""

from offline_contacts.storage.session import (
    LAST_KNOWN_RECORDS,
    PENDING_OPERATIONS,
    QUERY_PREFERENCES,
    LocalPersistenceError,
    SessionStorage,
)

__all__ = [
    "SessionStorage",
    "LocalPersistenceError",
    "PENDING_OPERATIONS",
    "LAST_KNOWN_RECORDS",
    "QUERY_PREFERENCES",
]
