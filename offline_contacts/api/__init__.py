"""
offline_contacts.api - Remote gateway to the contacts backend
"""

from offline_contacts.api.gateway import (
    DEFAULT_TIMEOUT,
    ContactPage,
    GatewayError,
    NotFoundError,
    RemoteGateway,
    RemoteValidationError,
    TransientNetworkError,
)

__all__ = [
    "RemoteGateway",
    "ContactPage",
    "GatewayError",
    "TransientNetworkError",
    "RemoteValidationError",
    "NotFoundError",
    "DEFAULT_TIMEOUT",
]
