"""
offline_contacts - Offline-first contact directory client

Keeps a contact directory usable while disconnected from its GraphQL backend,
queues local changes and reconciles them once connectivity returns.
"""

__version__ = "0.1.0"
