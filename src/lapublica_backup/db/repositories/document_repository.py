"""Generic repository for document-shaped collection tables."""

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import aiosqlite

from lapublica_backup.db.database import Database, to_storage_timestamp, utc_now
from lapublica_backup.exceptions import ConflictError
from lapublica_backup.models.record import StoredRecord


class DocumentRepository:
    """Repository for one collection table.

    Every table has ``id``, ``document``, ``created_at`` and ``updated_at``;
    ``columns`` names the additional indexed columns of the table.
    """

    def __init__(self, db: Database, table: str, columns: Sequence[str]) -> None:
        """Initialize repository.

        Args:
            db: Database instance
            table: Table name
            columns: Indexed columns besides the shared ones
        """
        self.db = db
        self.table = table
        self.columns = tuple(columns)

    async def insert(
        self,
        fields: dict[str, Any],
        document: dict[str, Any],
        created_at: datetime | None = None,
    ) -> str:
        """Insert a record.

        Args:
            fields: Values for the indexed columns
            document: Remaining record fields
            created_at: Original creation time to preserve

        Returns:
            New record ID
        """
        self._check_columns(fields)
        record_id = str(uuid.uuid4())
        now = utc_now()
        names = ["id", "document", "created_at", "updated_at", *fields]
        placeholders = ", ".join("?" for _ in names)
        await self._write(
            f"INSERT INTO {self.table} ({', '.join(names)}) VALUES ({placeholders})",
            (
                record_id,
                self.db.serialize_json(document),
                to_storage_timestamp(created_at) if created_at else now,
                now,
                *fields.values(),
            ),
        )
        return record_id

    async def update(
        self, record_id: str, fields: dict[str, Any], document: dict[str, Any]
    ) -> None:
        """Set the given columns and replace the document, keeping the creation time.

        Args:
            record_id: Record ID
            fields: Values for the indexed columns
            document: Remaining record fields
        """
        self._check_columns(fields)
        assignments = ", ".join(f"{name} = ?" for name in ["document", "updated_at", *fields])
        await self._write(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?",
            (self.db.serialize_json(document), utc_now(), *fields.values(), record_id),
        )

    async def find_by_id(self, record_id: str) -> StoredRecord | None:
        """Find record by ID.

        Args:
            record_id: Record ID

        Returns:
            Record or None if not found
        """
        return await self.find_one(["id = ?"], [record_id])

    async def find_one(
        self, where_clauses: Sequence[str], params: Sequence[Any]
    ) -> StoredRecord | None:
        """Find the oldest record matching all clauses."""
        records = await self.find(where_clauses, params, limit=1)
        return records[0] if records else None

    async def find(
        self,
        where_clauses: Sequence[str] = (),
        params: Sequence[Any] = (),
        limit: int | None = None,
    ) -> list[StoredRecord]:
        """Find records matching all clauses, oldest first.

        Args:
            where_clauses: SQL conditions joined with AND
            params: Parameters for the conditions
            limit: Maximum records to return

        Returns:
            List of records
        """
        sql = f"SELECT * FROM {self.table}{self._where(where_clauses)} ORDER BY created_at, id"
        query_params = list(params)
        if limit is not None:
            sql += " LIMIT ?"
            query_params.append(limit)
        cursor = await self.db.execute(sql, tuple(query_params))
        rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def find_ids(
        self, where_clauses: Sequence[str], params: Sequence[Any]
    ) -> list[str]:
        """IDs of records matching all clauses."""
        cursor = await self.db.execute(
            f"SELECT id FROM {self.table}{self._where(where_clauses)}", tuple(params)
        )
        rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    async def count(
        self, where_clauses: Sequence[str] = (), params: Sequence[Any] = ()
    ) -> int:
        """Count records matching all clauses."""
        cursor = await self.db.execute(
            f"SELECT COUNT(*) FROM {self.table}{self._where(where_clauses)}", tuple(params)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def _write(self, sql: str, parameters: tuple[Any, ...]) -> None:
        """Execute one write statement and commit it.

        Raises:
            ConflictError: If the write violates a uniqueness constraint
        """
        try:
            await self.db.execute(sql, parameters)
        except aiosqlite.IntegrityError as e:
            raise ConflictError(f"Conflict writing {self.table}: {e}") from e
        await self.db.commit()

    @staticmethod
    def _where(where_clauses: Sequence[str]) -> str:
        return f" WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

    def _check_columns(self, fields: dict[str, Any]) -> None:
        unknown = set(fields) - set(self.columns)
        if unknown:
            raise ValueError(f"Unknown columns for {self.table}: {sorted(unknown)}")

    def _row_to_record(self, row: Any) -> StoredRecord:
        """Convert database row to StoredRecord."""
        return StoredRecord(
            id=row["id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            fields={name: row[name] for name in self.columns},
            document=self.db.deserialize_json(row["document"]),
        )
