"""Base repository class for database operations.

Provides common functionality for all repository classes on top of a shared
Database handle.
"""

from __future__ import annotations

import sqlite3
import uuid
from typing import Any, Callable, Generic, TypeVar

from ..database import Database, utc_now

T = TypeVar("T")


def new_id() -> str:
    """Generate an opaque identifier for a new row."""
    return uuid.uuid4().hex


class BaseRepository(Generic[T]):
    """Base repository with common database operations.

    Provides:
    - Async execution via the Database executor helpers
    - Transaction support
    - Implicit workspace creation

    Subclasses should implement entity-specific CRUD operations.
    """

    def __init__(self, db: Database) -> None:
        """Initialize repository with a database handle.

        Args:
            db: Database the repository reads and writes.
        """
        self.db = db

    async def _execute(
        self,
        query: str,
        params: tuple = (),
        fetch: str = "none",
    ) -> Any:
        """Execute a query with optional fetch.

        Args:
            query: SQL query string.
            params: Query parameters.
            fetch: Fetch mode - "none", "one", "all".

        Returns:
            Query result based on fetch mode.
        """
        if fetch == "one":
            return await self.db.query_one(query, params)
        elif fetch == "all":
            return await self.db.query(query, params)
        return await self.db.execute(query, params)

    async def _run_in_transaction(
        self,
        operations: Callable[[sqlite3.Connection], T],
    ) -> T:
        """Run operations within a transaction.

        Args:
            operations: Function that takes connection and performs operations.

        Returns:
            Result from operations function.
        """
        return await self.db.run_in_transaction(operations)

    @staticmethod
    def ensure_workspace(conn: sqlite3.Connection, workspace_id: str) -> None:
        """Create the workspace row on first write."""
        conn.execute(
            "INSERT INTO workspaces (id, created_at) VALUES (?, ?) "
            "ON CONFLICT(id) DO NOTHING",
            (workspace_id, utc_now()),
        )

