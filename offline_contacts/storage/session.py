"""
SQLite-backed session storage for the offline contact directory.

Holds the three persisted partitions as JSON documents:
- pendingOperations: ordered list of queued mutations
- lastKnownRecords: most recent committed page union
- queryPreferences: sort field, sort order and search term
"""

import json
import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

# Partition names
PENDING_OPERATIONS = "pendingOperations"
LAST_KNOWN_RECORDS = "lastKnownRecords"
QUERY_PREFERENCES = "queryPreferences"

PARTITIONS = (PENDING_OPERATIONS, LAST_KNOWN_RECORDS, QUERY_PREFERENCES)

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_state (
    partition TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

logger = logging.getLogger(__name__)


class LocalPersistenceError(Exception):
    """Raised when the session store is full, unavailable or corrupt."""

    pass


class SessionStorage:
    """
    Key/value store of JSON partitions backed by SQLite.

    Usage:
        storage = SessionStorage('/path/to/session.db')
        storage.initialize()

        # Or use in-memory for testing:
        storage = SessionStorage(':memory:')
        storage.initialize()

        storage.save(PENDING_OPERATIONS, [...])
        ops = storage.load(PENDING_OPERATIONS, [])
    """

    def __init__(self, db_path: str):
        """
        Initialize the storage manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        In-memory databases share one connection so the data persists
        across operations; file databases open a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
            return self._shared_connection
        return sqlite3.connect(self.db_path)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back on error, and wraps sqlite errors
        in LocalPersistenceError.
        """
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise LocalPersistenceError(f"Cannot open session store: {e}") from e
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalPersistenceError(f"Session store error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the session_state table if it doesn't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    def save(self, partition: str, data: Any) -> None:
        """
        Store a JSON-serializable value under a partition name.

        Raises:
            LocalPersistenceError: If the value cannot be serialized or written
        """
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise LocalPersistenceError(
                f"Cannot serialize partition '{partition}': {e}"
            ) from e

        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO session_state (partition, payload, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(partition) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (partition, payload),
            )

    def load(self, partition: str, default: Any = None) -> Any:
        """
        Load a partition, returning ``default`` when it is missing or corrupt.

        Raises:
            LocalPersistenceError: If the store cannot be read
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT payload FROM session_state WHERE partition = ?",
                (partition,),
            ).fetchone()

        if row is None:
            return default

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing session partition ({partition}): {e}")
            return default

    def remove(self, partition: str) -> None:
        """Delete one partition."""
        with self.connection() as conn:
            conn.execute(
                "DELETE FROM session_state WHERE partition = ?", (partition,)
            )

    def clear(self) -> None:
        """Delete every partition (end of session)."""
        with self.connection() as conn:
            conn.execute("DELETE FROM session_state")

    def partitions(self) -> list[str]:
        """Names of the partitions currently stored."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT partition FROM session_state ORDER BY partition"
            ).fetchall()
        return [row[0] for row in rows]

    # =========================================================================
    # Partition helpers
    # =========================================================================

    def save_pending_operations(self, operations: list[dict[str, Any]]) -> None:
        self.save(PENDING_OPERATIONS, operations)

    def load_pending_operations(self) -> list[dict[str, Any]]:
        data = self.load(PENDING_OPERATIONS, [])
        return data if isinstance(data, list) else []

    def save_last_known_records(self, records: list[dict[str, Any]]) -> None:
        self.save(LAST_KNOWN_RECORDS, records)

    def load_last_known_records(self) -> list[dict[str, Any]]:
        data = self.load(LAST_KNOWN_RECORDS, [])
        return data if isinstance(data, list) else []

    def save_query_preferences(self, preferences: dict[str, Any]) -> None:
        self.save(QUERY_PREFERENCES, preferences)

    def load_query_preferences(self) -> dict[str, Any]:
        data = self.load(QUERY_PREFERENCES, {})
        return data if isinstance(data, dict) else {}
