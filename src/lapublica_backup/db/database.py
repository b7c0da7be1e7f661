"""Database connection and migration management."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

# Columns shared by every collection table
_DOCUMENT_COLUMNS = """
    id TEXT PRIMARY KEY,
    document TEXT NOT NULL DEFAULT '{}',
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
"""


def to_storage_timestamp(value: datetime) -> str:
    """Format a timestamp so that string order matches time order.

    Args:
        value: Timestamp, naive values are taken as UTC

    Returns:
        ISO 8601 string in UTC with microseconds
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now() -> str:
    """Current time in storage format."""
    return to_storage_timestamp(datetime.now(timezone.utc))


class Database:
    """Database connection and operations manager."""

    def __init__(self, database_path: str) -> None:
        """Initialize database manager.

        Args:
            database_path: Path to SQLite database file, or ``:memory:``
        """
        self.database_path = database_path
        self.conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._in_transaction = False

    async def connect(self) -> None:
        """Connect to the database."""
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = await aiosqlite.connect(self.database_path)
        self.conn.row_factory = aiosqlite.Row

        await self.conn.execute("PRAGMA foreign_keys = ON")

    async def close(self) -> None:
        """Close database connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None

    async def execute(
        self, sql: str, parameters: tuple[Any, ...] | dict[str, Any] = ()
    ) -> aiosqlite.Cursor:
        """Execute a SQL statement.

        Args:
            sql: SQL statement
            parameters: Query parameters

        Returns:
            Database cursor
        """
        if not self.conn:
            raise RuntimeError("Database not connected")
        return await self.conn.execute(sql, parameters)

    async def commit(self) -> None:
        """Commit current transaction."""
        if not self.conn:
            raise RuntimeError("Database not connected")
        # Inside transaction() the outer block commits
        if self._in_transaction:
            return
        await self.conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Context manager for database transactions.

        If already in a transaction, yields without starting a new one.

        Example:
            async with db.transaction():
                await db.execute(...)
        """
        if not self.conn:
            raise RuntimeError("Database not connected")

        if self._in_transaction:
            yield
            return

        async with self._write_lock:
            self._in_transaction = True
            await self.conn.execute("BEGIN")
            try:
                yield
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
            finally:
                self._in_transaction = False

    async def migrate(self) -> None:
        """Run database migrations."""
        try:
            cursor = await self.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = await cursor.fetchone()
            current_version = row[0] if row else 0
        except aiosqlite.OperationalError:
            current_version = 0

        if current_version < 1:
            await self._migrate_v1()

    async def _migrate_v1(self) -> None:
        """Initial schema: one table per platform collection."""
        async with self.transaction():
            await self.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at DATETIME NOT NULL
                )
            """)

            # Accounts
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS users (
                    {_DOCUMENT_COLUMNS},
                    email TEXT NOT NULL COLLATE NOCASE UNIQUE,
                    username TEXT COLLATE NOCASE UNIQUE,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user'
                )
            """)

            # Category collections
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS categories (
                    {_DOCUMENT_COLUMNS},
                    name TEXT NOT NULL COLLATE NOCASE,
                    type TEXT NOT NULL,
                    parent_id TEXT REFERENCES categories(id),
                    is_active INTEGER NOT NULL DEFAULT 1,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(name, type, parent_id)
                )
            """)
            await self.execute(
                "CREATE INDEX IF NOT EXISTS idx_categories_parent ON categories(parent_id)"
            )
            for table in ("group_categories", "forum_categories"):
                await self.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        {_DOCUMENT_COLUMNS},
                        name TEXT NOT NULL COLLATE NOCASE UNIQUE,
                        is_active INTEGER NOT NULL DEFAULT 1
                    )
                """)

            # Owned containers
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS companies (
                    {_DOCUMENT_COLUMNS},
                    name TEXT NOT NULL COLLATE NOCASE,
                    owner_id TEXT,
                    category_id TEXT
                )
            """)
            for table in ("groups", "forums"):
                await self.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        {_DOCUMENT_COLUMNS},
                        name TEXT NOT NULL COLLATE NOCASE,
                        creator_id TEXT,
                        category_id TEXT
                    )
                """)

            # Authored content
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS posts (
                    {_DOCUMENT_COLUMNS},
                    content TEXT NOT NULL,
                    author_id TEXT
                )
            """)
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS group_posts (
                    {_DOCUMENT_COLUMNS},
                    title TEXT NOT NULL COLLATE NOCASE,
                    group_id TEXT,
                    author_id TEXT
                )
            """)
            await self.execute(f"""
                CREATE TABLE IF NOT EXISTS forum_posts (
                    {_DOCUMENT_COLUMNS},
                    title TEXT NOT NULL COLLATE NOCASE,
                    forum_id TEXT,
                    author_id TEXT
                )
            """)
            for table in ("announcements", "blogs"):
                await self.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        {_DOCUMENT_COLUMNS},
                        title TEXT NOT NULL COLLATE NOCASE,
                        author_id TEXT,
                        category_id TEXT
                    )
                """)
            for table in ("job_offers", "advisories"):
                await self.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        {_DOCUMENT_COLUMNS},
                        title TEXT NOT NULL COLLATE NOCASE,
                        company_id TEXT,
                        category_id TEXT
                    )
                """)

            for table in (
                "users", "categories", "group_categories", "forum_categories",
                "companies", "groups", "forums", "posts", "group_posts",
                "forum_posts", "announcements", "blogs", "job_offers", "advisories",
            ):
                await self.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_created "
                    f"ON {table}(created_at)"
                )

            await self.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, utc_now()),
            )

    @staticmethod
    def serialize_json(data: Any) -> str:
        """Serialize data to JSON string.

        Args:
            data: Data to serialize

        Returns:
            JSON string
        """
        return json.dumps(data, ensure_ascii=False, default=str)

    @staticmethod
    def deserialize_json(data: str | None) -> Any:
        """Deserialize JSON string to data.

        Args:
            data: JSON string

        Returns:
            Deserialized data
        """
        return json.loads(data) if data else {}
