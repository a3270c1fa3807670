"""
offline_contacts.sync - Offline-first synchronization and caching engine

Pending operation queue, query cache, connectivity monitor, sort/filter
projection, reconciliation engine and the contact store tying them together.
"""
