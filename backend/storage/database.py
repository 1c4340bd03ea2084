"""
Database access module for PulseDeck.

This module provides thread-safe SQLite access for FastAPI's async environment.
A Database object is built once from configuration and handed to repositories
and request handlers; nothing here is a module-level singleton.

Usage:
    from storage.database import Database

    db = Database("~/.pulsedeck/pulsedeck.db")
    await db.initialize()

    # Simple query
    rows = await db.query("SELECT * FROM campaigns WHERE workspace_id = ?", (ws_id,))

    # Insert/Update
    await db.execute("UPDATE campaigns SET status = ? WHERE id = ?", ("paused", cid))

    # Transaction (multiple operations)
    def _do(conn):
        conn.execute("UPDATE ...", (...))
        conn.execute("INSERT ...", (...))
    await db.run_in_transaction(_do)  # commits on success, rolls back on exception
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from .schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (microsecond precision)."""
    return datetime.now(timezone.utc).isoformat()


class Database:
    """SQLite database handle.

    Each unit of work opens a fresh connection. SQLite connections are cheap,
    and this avoids sharing a connection across executor threads.
    """

    def __init__(self, db_path: str | Path, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout

    @property
    def exists(self) -> bool:
        return self.db_path.exists()

    def connect(self) -> sqlite3.Connection:
        """Create a new connection with row access by column name."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")  # Better concurrent reads
        conn.execute("PRAGMA foreign_keys=ON")   # Enforce FK constraints
        return conn

    async def _run(self, func: Callable[[], T]) -> T:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func)

    async def query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """Execute a SELECT query and return all rows.

        Example:
            rows = await db.query(
                "SELECT * FROM upload_jobs WHERE status = ?",
                ("queued",)
            )
            for row in rows:
                print(row["id"], row["progress"])
        """
        def _execute():
            conn = self.connect()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()

        return await self._run(_execute)

    async def query_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Execute a SELECT query and return first row or None."""
        def _execute():
            conn = self.connect()
            try:
                return conn.execute(sql, params).fetchone()
            finally:
                conn.close()

        return await self._run(_execute)

    async def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE and return rows affected.

        Auto-commits on success.
        """
        def _execute():
            conn = self.connect()
            try:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()

        return await self._run(_execute)

    async def run_in_transaction(self, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run a function with a database connection in a transaction.

        The function receives a connection and should perform all DB operations.
        Commits on success, rolls back on exception.
        """
        def _execute():
            with DatabaseTransaction(self) as conn:
                return func(conn)

        return await self._run(_execute)

    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist.

        Called on application startup.
        """
        def _init():
            conn = self.connect()
            try:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
                tables = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table'"
                ).fetchall()
            finally:
                conn.close()
            logger.info(f"Database ready at {self.db_path} with {len(tables)} tables.")

        await self._run(_init)


class DatabaseTransaction:
    """Context manager for multi-statement transactions.

    Usage:
        with DatabaseTransaction(db) as conn:
            conn.execute("UPDATE ...", (...))
            conn.execute("INSERT ...", (...))
            # Commits automatically on success
            # Rolls back on any exception
    """

    def __init__(self, database: Database):
        self.database = database
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        self.conn = self.database.connect()
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn:
            if exc_type is None:
                self.conn.commit()
            else:
                self.conn.rollback()
            self.conn.close()
        return False  # Don't suppress exceptions


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking callable (file parsing, hashing) in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, func, *args)
