"""
GraphQL gateway to the contacts backend.

Provides an asyncio-friendly interface to the remote service for:
- Listing contacts with pagination, sorting and search
- Fetching, creating, updating and deleting single contacts
- Uploading a contact photo (``updateAvatar`` mutation)
- A minimal reachability probe

Blocking ``requests`` calls run in a worker thread so the event loop only
suspends at the network boundary. Failures are classified into transient
(retry later) and rejected (do not retry) errors.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from requests.exceptions import RequestException

from offline_contacts import __version__
from offline_contacts.sync.record import Record

# HTTP timeout for every gateway call
DEFAULT_TIMEOUT = 5.0  # seconds

USER_AGENT = f"offline-contacts/{__version__}"

# GraphQL error codes that mean the record does not exist
NOT_FOUND_CODES = {"NOT_FOUND", "NOTFOUND", "RECORD_NOT_FOUND"}

CONTACT_FIELDS = """
    id
    name
    phone
    photo
    createdAt
    updatedAt
"""

LIST_QUERY = f"""
query GetContacts($pagination: PaginationInput) {{
  contacts(pagination: $pagination) {{
    contacts {{ {CONTACT_FIELDS} }}
    page
    limit
    pages
    total
  }}
}}
"""

GET_QUERY = f"""
query GetContact($id: ID!) {{
  contact(id: $id) {{ {CONTACT_FIELDS} }}
}}
"""

CREATE_MUTATION = f"""
mutation CreateContact($input: ContactInput!) {{
  createContact(input: $input) {{ {CONTACT_FIELDS} }}
}}
"""

UPDATE_MUTATION = f"""
mutation UpdateContact($id: ID!, $input: ContactInput!) {{
  updateContact(id: $id, input: $input) {{ {CONTACT_FIELDS} }}
}}
"""

DELETE_MUTATION = """
mutation DeleteContact($id: ID!) {
  deleteContact(id: $id) { id }
}
"""

UPDATE_AVATAR_MUTATION = f"""
mutation UpdateAvatar($id: ID!, $photo: String!) {{
  updateAvatar(id: $id, photo: $photo) {{ {CONTACT_FIELDS} }}
}}
"""

PING_QUERY = "query { __typename }"

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for remote gateway failures."""

    pass


class TransientNetworkError(GatewayError):
    """Connection refused, timeout, DNS failure or server-side outage."""

    pass


class RemoteValidationError(GatewayError):
    """The backend rejected the request; retrying would repeat the rejection."""

    pass


class NotFoundError(RemoteValidationError):
    """The referenced contact no longer exists on the backend."""

    pass


@dataclass
class ContactPage:
    """One page of contacts plus the server's pagination metadata."""

    records: list[Record] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    pages: int = 0
    total: int = 0

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ContactPage":
        return cls(
            records=[Record.from_api_response(c) for c in data.get("contacts") or []],
            page=int(data.get("page") or 1),
            limit=int(data.get("limit") or 0),
            pages=int(data.get("pages") or 0),
            total=int(data.get("total") or 0),
        )


class RemoteGateway:
    """
    GraphQL client for the contacts backend.

    Attributes:
        url: GraphQL endpoint URL
        timeout: Per-request timeout in seconds

    Usage:
        gateway = RemoteGateway("http://localhost:4000/graphql")

        page = await gateway.list_contacts(page=1, limit=10)
        record = await gateway.create({"name": "Ana", "phone": "555"})
        await gateway.update(record.id, {"phone": "556"})
        await gateway.remove(record.id)
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the gateway.

        Args:
            url: GraphQL endpoint URL
            timeout: Request timeout in seconds (default 5.0)
        """
        if not url:
            raise ValueError("GraphQL URL cannot be empty")
        self.url = url
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"RemoteGateway(url={self.url!r}, timeout={self.timeout})"

    # =========================================================================
    # Transport
    # =========================================================================

    def _post(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Execute one GraphQL request and return its ``data`` object.

        Raises:
            TransientNetworkError: On timeouts, connection errors and 5xx/429
            NotFoundError: When the backend reports a missing record
            RemoteValidationError: On other GraphQL errors and 4xx responses
        """
        operation_name = query.split("(")[0].split("{")[0].strip() or "query"
        try:
            response = requests.post(
                self.url,
                json={"query": query, "variables": variables or {}},
                timeout=timeout if timeout is not None else self.timeout,
                headers={"User-Agent": USER_AGENT},
            )
        except requests.Timeout as e:
            raise TransientNetworkError(f"{operation_name} timed out: {e}") from e
        except requests.ConnectionError as e:
            raise TransientNetworkError(f"{operation_name} connection failed: {e}") from e
        except RequestException as e:
            raise TransientNetworkError(f"{operation_name} request failed: {e}") from e

        status_code = response.status_code
        if status_code >= 500 or status_code == 429:
            raise TransientNetworkError(
                f"{operation_name} failed with status {status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            if status_code >= 400:
                self._raise_for_status(operation_name, status_code)
            raise TransientNetworkError(
                f"{operation_name} returned a non-JSON response"
            ) from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            self._raise_graphql_error(operation_name, errors)

        if status_code >= 400:
            self._raise_for_status(operation_name, status_code)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise RemoteValidationError(f"{operation_name} returned no data")
        return data

    @staticmethod
    def _raise_for_status(operation_name: str, status_code: int) -> None:
        if status_code == 404:
            raise NotFoundError(f"{operation_name} target not found")
        raise RemoteValidationError(
            f"{operation_name} rejected with status {status_code}"
        )

    @staticmethod
    def _raise_graphql_error(operation_name: str, errors: list[Any]) -> None:
        first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
        message = first.get("message") or f"{operation_name} failed"
        code = str((first.get("extensions") or {}).get("code", "")).upper()
        if code in NOT_FOUND_CODES or "not found" in message.lower():
            raise NotFoundError(message)
        raise RemoteValidationError(message)

    async def _execute(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self._post, query, variables, timeout)

    @staticmethod
    def _contact(data: dict[str, Any], key: str) -> Record:
        contact = data.get(key)
        if not contact:
            raise NotFoundError(f"{key} returned no contact")
        return Record.from_api_response(contact)

    # =========================================================================
    # Contact operations
    # =========================================================================

    async def list_contacts(
        self,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "name",
        sort_order: str = "asc",
        search: str = "",
    ) -> ContactPage:
        """Fetch one page of contacts sorted and filtered by the backend."""
        logger.debug(
            f"Listing contacts page={page} limit={limit} "
            f"sort={sort_by}/{sort_order} search={search!r}"
        )
        data = await self._execute(
            LIST_QUERY,
            {
                "pagination": {
                    "page": page,
                    "limit": limit,
                    "sortBy": sort_by,
                    "sortOrder": sort_order,
                    "search": search,
                }
            },
        )
        return ContactPage.from_api_response(data.get("contacts") or {})

    async def get_one(self, record_id: str) -> Record:
        data = await self._execute(GET_QUERY, {"id": record_id})
        return self._contact(data, "contact")

    async def create(self, input_data: dict[str, Any]) -> Record:
        """Create a contact; only name and phone are sent."""
        payload = {
            "name": input_data.get("name", ""),
            "phone": input_data.get("phone", ""),
        }
        data = await self._execute(CREATE_MUTATION, {"input": payload})
        record = self._contact(data, "createContact")
        logger.info(f"Created contact {record.id}")
        return record

    async def update(self, record_id: str, input_data: dict[str, Any]) -> Record:
        """Update name, phone and/or photo of a contact."""
        payload = {
            key: input_data[key] for key in ("name", "phone", "photo") if key in input_data
        }
        data = await self._execute(UPDATE_MUTATION, {"id": record_id, "input": payload})
        record = self._contact(data, "updateContact")
        logger.info(f"Updated contact {record_id}")
        return record

    async def remove(self, record_id: str) -> dict[str, Any]:
        data = await self._execute(DELETE_MUTATION, {"id": record_id})
        deleted = data.get("deleteContact")
        if not deleted:
            raise NotFoundError(f"deleteContact returned nothing for {record_id}")
        logger.info(f"Deleted contact {record_id}")
        return {"id": str(deleted.get("id", record_id))}

    async def update_media(self, record_id: str, photo: str) -> Record:
        """Replace the photo of a contact with an encoded image."""
        data = await self._execute(
            UPDATE_AVATAR_MUTATION, {"id": record_id, "photo": photo}
        )
        record = self._contact(data, "updateAvatar")
        logger.info(f"Updated photo of contact {record_id}")
        return record

    async def ping(self, timeout: Optional[float] = None) -> bool:
        """
        Minimal round trip to check the backend is reachable.

        Returns:
            True when the backend answered, False otherwise
        """
        try:
            await self._execute(PING_QUERY, timeout=timeout)
        except TransientNetworkError as e:
            logger.debug(f"Server check error: {e}")
            return False
        except GatewayError as e:
            # The backend answered, even if it rejected the probe
            logger.debug(f"Server check rejected: {e}")
        return True
